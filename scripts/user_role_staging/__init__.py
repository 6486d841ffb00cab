"""Snowflake user and role staging extraction.

Provisions staging tables, a stored procedure and a daily task in Snowflake,
copies account metadata (roles, grants, users, MFA status, login sessions)
from SNOWFLAKE.ACCOUNT_USAGE into those tables, and generates RSA key pairs
for key-pair authentication.
"""

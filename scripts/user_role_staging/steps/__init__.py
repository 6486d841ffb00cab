"""One refresh step per staging table."""

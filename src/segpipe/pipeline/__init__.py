"""Pipeline bookkeeping: modification times used for staleness checks."""

from .modified_time import TimeStamp, ModifiedTimeMixin

__all__ = ["TimeStamp", "ModifiedTimeMixin"]

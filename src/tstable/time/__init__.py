"""Calendar bucketing functions."""

from tstable.time.buckets import BUCKETS, CalendarBucket, floor_step, get_bucket

__all__ = ["BUCKETS", "CalendarBucket", "floor_step", "get_bucket"]

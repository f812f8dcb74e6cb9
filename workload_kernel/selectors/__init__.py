"""Read-only query selectors."""

from workload_kernel.selectors.base import BaseSelector
from workload_kernel.selectors.course_selector import CourseSelector

__all__ = [
    "BaseSelector",
    "CourseSelector",
]

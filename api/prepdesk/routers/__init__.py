# This file makes the routers directory a Python package
from . import (
    content,
    questions,
    health,
)

"""CourseHub: course marketplace enrollment ledger and lecture unlock engine."""

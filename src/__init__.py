"""Triangle tutor: adaptive item pipeline, grading and learner sessions."""

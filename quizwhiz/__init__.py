"""Spaced-repetition scheduling and progress analytics for QuizWhiz."""

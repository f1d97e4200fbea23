"""ThinkForge: AI tutor chat, timed quizzes and progress tracking."""

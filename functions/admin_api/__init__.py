"""
LearnVerse admin service.

A FastAPI application that puts role-gated CRUD over the hosted Postgres
content tables (exams, subjects, chapters, topics, formula cards, questions
and banners), image uploads to S3-compatible buckets, a Redis change feed and
the LearnVerse marketing pages.
"""

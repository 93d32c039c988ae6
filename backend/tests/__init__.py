"""
Notes Pipeline Test Suite

Test Structure:
    tests/
    ├── conftest.py          # Shared fixtures (mock client, SQLite job database)
    └── unit/                # Unit tests (isolated, no external services)
        ├── test_chunker.py, test_chunk_processor.py, test_aggregator.py
        ├── test_quiz_stage.py, test_summary_stage.py, test_notes_pipeline.py
        ├── test_generation_client.py, test_retry_policy.py
        ├── test_job_models.py, test_job_queue.py, test_job_worker.py, test_job_events.py
        └── test_jobs_router.py, test_error_handling.py, test_config.py, test_run_worker_cli.py

Running Tests:
    # Run all tests
    pytest backend/tests/ -v

    # Run with coverage
    pytest backend/tests/ --cov=app --cov-report=html
"""

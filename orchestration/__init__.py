"""
Orchestration module for sync_build_test.

Validates configuration, confirms the plan, and runs the build/test pipeline
phase by phase. Import the entry point from orchestration.Orchestrator.
"""

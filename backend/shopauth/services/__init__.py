"""Application services (framework-agnostic orchestration)."""

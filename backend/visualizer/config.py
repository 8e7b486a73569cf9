from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {
        "env_file": "../.env",
        "extra": "ignore",
        "env_prefix": "",
        "case_sensitive": False,
    }

    # Temporal
    temporal_address: str = "localhost:7233"
    temporal_namespace: str = "default"
    temporal_api_key: str | None = None
    temporal_task_queue: str = "visualizer-tasks"
    worker_max_concurrent_activities: int = 8
    worker_shutdown_grace_seconds: float = 150.0

    # AI APIs
    anthropic_api_key: str = ""
    google_ai_api_key: str = ""
    gemini_model: str = "gemini-3-pro-image-preview"
    vision_model: str = "claude-opus-4-6"
    validation_model: str = "claude-sonnet-4-5-20250929"
    extraction_model: str = "claude-haiku-4-5-20251001"
    replicate_api_token: str = ""
    depth_model: str = "depth-anything/depth-anything-v3-metric"

    # Timeouts (seconds), one bound per capability call
    generation_timeout_seconds: float = 120.0
    analysis_timeout_seconds: float = 60.0
    validation_timeout_seconds: float = 30.0
    extraction_timeout_seconds: float = 20.0
    photo_download_timeout_seconds: float = 30.0
    depth_timeout_seconds: float = 25.0

    # Generation policy
    max_refinement_retries: int = 1
    max_validation_attempts: int = 2
    validation_threshold: float = 0.7
    default_concept_count: int = 4
    enable_structure_validation: bool = True
    enable_iterative_refinement: bool = True
    enable_edge_detection: bool = True
    enable_depth_estimation: bool = True

    # Conversation policy
    readiness_turn_threshold: int = 2
    max_question_turns: int = 5
    preference_extractor: str = "keyword"  # "keyword" or "llm"

    # App
    environment: str = "development"
    log_level: str = "INFO"
    log_file: str = ""


settings = Settings()

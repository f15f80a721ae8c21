from app.models.transcript import Transcript
from app.models.feature_record import FeatureRecord
from app.models.llm_cache_entry import LlmCacheEntry
from app.models.job import Job

__all__ = ["Transcript", "FeatureRecord", "LlmCacheEntry", "Job"]

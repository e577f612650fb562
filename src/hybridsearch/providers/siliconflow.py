"""SiliconFlow embedding provider.

SiliconFlow exposes an OpenAI-compatible ``/embeddings`` endpoint, so this
provider reuses the OpenAI client with a different base URL, model table and
a smaller request batch.
"""

from hybridsearch.providers.openai import OpenAIEmbeddingProvider

MODEL_METADATA = {
    "BAAI/bge-large-zh": {"dimension": 1024, "max_tokens": 512},
    "BAAI/bge-base-zh": {"dimension": 768, "max_tokens": 512},
    "BAAI/bge-small-zh": {"dimension": 512, "max_tokens": 512},
    "BAAI/bge-m3": {"dimension": 1024, "max_tokens": 8192},
    "thenlper/gte-large": {"dimension": 1024, "max_tokens": 512},
}


class SiliconFlowEmbeddingProvider(OpenAIEmbeddingProvider):
    """Embeddings from SiliconFlow's hosted BGE/GTE models."""

    provider_name = "siliconflow"
    display_name = "SiliconFlow"
    default_base_url = "https://api.siliconflow.cn/v1"
    max_batch_size = 50
    model_metadata = MODEL_METADATA
    default_dimension = 1024
    default_max_tokens = 512
    api_key_env = "SILICONFLOW_API_KEY"

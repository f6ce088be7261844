import logging
import threading
import numpy as np

logger = logging.getLogger(__name__)


class EmbeddingNotReadyError(RuntimeError):
    pass


def l2_normalize(vec):
    vec = np.asarray(vec, dtype=np.float32)
    norm = float(np.linalg.norm(vec))
    if norm == 0.0:
        return vec
    return vec / norm


class EmbeddingService:
    """
    Sentence embeddings for classification.

    provider='sentence-transformers' runs a local model (mean pooling,
    normalized output). provider='openai' calls the embeddings API. A
    preloaded model object exposing `encode()` can be passed in directly.
    """

    def __init__(self, provider='sentence-transformers',
                 model='sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2',
                 api_key=None, model_instance=None):
        self.provider = provider
        self.model = model
        self.api_key = api_key
        self._model = model_instance
        self._lock = threading.Lock()
        self._encode_lock = threading.Lock()
        self.dim = None
        if model_instance is not None:
            self.dim = _model_dim(model_instance)

    def initialize(self):
        """Load the model. Safe to call more than once."""
        with self._lock:
            if self.is_ready():
                return
            if self.provider == 'sentence-transformers':
                from sentence_transformers import SentenceTransformer
                logger.info(f"Loading embedding model {self.model}")
                self._model = SentenceTransformer(self.model)
                self.dim = _model_dim(self._model)
                logger.info(f"Embedding model loaded: {self.model} (dim={self.dim})")
            elif self.provider == 'openai':
                if not self.api_key:
                    raise EmbeddingNotReadyError("OPENAI_API_KEY not configured")
                import openai
                self._model = openai.OpenAI(api_key=self.api_key)
            else:
                raise ValueError(f"Unknown embedding provider: {self.provider}")

    def is_ready(self):
        return self._model is not None

    def embed(self, text):
        return self.embed_texts([text])[0]

    def embed_texts(self, texts):
        """Batch embed texts. Returns list of unit-length float32 numpy arrays."""
        if not texts:
            return []
        if not self.is_ready():
            raise EmbeddingNotReadyError("Embedding model not initialized")

        if self.provider == 'openai' and not hasattr(self._model, 'encode'):
            vectors = self._embed_openai(texts)
        else:
            vectors = self._embed_local(texts)
        return [l2_normalize(v) for v in vectors]

    def _embed_local(self, texts):
        with self._encode_lock:
            output = self._model.encode(
                list(texts),
                normalize_embeddings=True,
                convert_to_numpy=True,
                show_progress_bar=False,
            )
        return [np.asarray(row, dtype=np.float32) for row in output]

    def _embed_openai(self, texts):
        embeddings = []
        batch_size = 100
        for i in range(0, len(texts), batch_size):
            # Truncate very long texts to avoid token limits
            batch = [t[:8000] for t in texts[i:i + batch_size]]
            response = self._model.embeddings.create(model=self.model, input=batch)
            for item in response.data:
                embeddings.append(np.array(item.embedding, dtype=np.float32))
        if embeddings and self.dim is None:
            self.dim = len(embeddings[0])
        return embeddings

    def model_info(self):
        return {
            'provider': self.provider,
            'name': self.model,
            'is_initialized': self.is_ready(),
            'dim': self.dim,
        }


def _model_dim(model):
    getter = getattr(model, 'get_sentence_embedding_dimension', None)
    return getter() if callable(getter) else None

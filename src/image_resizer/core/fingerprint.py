"""Cache key derivation for resolved image requests."""

import hashlib
import json

from .models import ImageRequest


def canonical_request(request: ImageRequest) -> str:
    """Serialize a request with sorted keys so field order never matters."""
    return json.dumps(request.model_dump(), sort_keys=True, separators=(",", ":"))


def build_fingerprint(request: ImageRequest) -> str:
    """
    Return the SHA-1 hex digest identifying a resolved request.

    The request's image location must already be resolved to its absolute
    form when proxying, so that "/a.jpg" and "http://host/a.jpg" share a key.
    """
    return hashlib.sha1(canonical_request(request).encode("utf-8")).hexdigest()

"""
Face descriptor extraction using InsightFace.
Decodes base64 images with OpenCV and returns one L2-normalised
descriptor for the most confident detected face.
Supports GPU with CPU fallback.
"""
import base64
import binascii
import logging
import re
from typing import Dict, List, Optional

import cv2
import numpy as np

from errors import ExtractorError, InvalidImage
from models import Signature

logger = logging.getLogger("face_attendance.recognition")

DATA_URL_PREFIX = re.compile(r"^data:image/\w+;base64,")


def decode_image(image_b64: str) -> np.ndarray:
    """
    Decode a base64 string (optionally a data URL) into a BGR image.

    Raises InvalidImage when the payload is not a readable image.
    """
    payload = DATA_URL_PREFIX.sub("", image_b64.strip())
    try:
        image_data = base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as e:
        raise InvalidImage("Image is not valid base64") from e

    nparr = np.frombuffer(image_data, np.uint8)
    img = cv2.imdecode(nparr, cv2.IMREAD_COLOR) if nparr.size else None
    if img is None:
        raise InvalidImage("Invalid image format")
    return img


def select_providers(use_gpu: bool) -> List[str]:
    """Pick ONNX Runtime execution providers, preferring GPU when asked."""
    if not use_gpu:
        logger.info("Using CPU (GPU disabled)")
        return ['CPUExecutionProvider']

    import onnxruntime as ort
    available_providers = ort.get_available_providers()

    if 'CUDAExecutionProvider' in available_providers:
        logger.info("GPU (CUDA) available, using GPU acceleration")
        return ['CUDAExecutionProvider', 'CPUExecutionProvider']
    if 'CoreMLExecutionProvider' in available_providers:
        logger.info("CoreML available, using Apple GPU acceleration")
        return ['CoreMLExecutionProvider', 'CPUExecutionProvider']
    logger.warning("GPU not available, using CPU")
    return ['CPUExecutionProvider']


class FaceRecognizer:
    """
    Wrapper around InsightFace producing face descriptors.
    Uses buffalo_l model by default with GPU support and CPU fallback.
    """

    def __init__(self, model_name: str = "buffalo_l", det_size: tuple = (640, 640), use_gpu: bool = True):
        """
        Load the detection and recognition models.

        Args:
            model_name: InsightFace model pack (buffalo_l, buffalo_sc, etc.)
            det_size: Detection size for face detector
            use_gpu: Try to use GPU, fallback to CPU if unavailable
        """
        from insightface.app import FaceAnalysis

        logger.info("Loading InsightFace model: %s...", model_name)
        providers = select_providers(use_gpu)

        self.app = FaceAnalysis(name=model_name, providers=providers)
        self.app.prepare(ctx_id=0 if use_gpu else -1, det_size=det_size)

        self.model_name = model_name
        self.providers = providers
        logger.info("Model %s loaded with providers: %s", model_name, providers)

    def extract(self, image_b64: str) -> Optional[Signature]:
        """
        Return the descriptor of the highest-scoring face, or None if no
        face is found.

        Raises InvalidImage for undecodable input and ExtractorError when
        the model itself fails.
        """
        img = decode_image(image_b64)
        try:
            faces = self.app.get(img)
        except Exception as e:
            raise ExtractorError(f"Face analysis failed: {e}") from e

        if not faces:
            return None

        face = max(faces, key=lambda f: float(f.det_score))
        return tuple(float(v) for v in face.normed_embedding)

    def get_provider_info(self) -> Dict:
        """Get information about active execution providers."""
        return {
            "providers": self.providers,
            "using_gpu": any(p in ['CUDAExecutionProvider', 'CoreMLExecutionProvider'] for p in self.providers)
        }

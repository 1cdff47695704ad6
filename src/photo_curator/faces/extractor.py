"""InsightFace wrapper for face detection and descriptor extraction."""

import logging

import cv2
import numpy as np
from insightface.app import FaceAnalysis

from photo_curator.config import FACE_DEVICE
from photo_curator.models import BoundingBox, Detection, DetectorConfig

logger = logging.getLogger(__name__)


class InsightFaceExtractor:
    """Detect faces and extract ArcFace descriptors using InsightFace."""

    def __init__(self, device: str = FACE_DEVICE) -> None:
        self.device = device
        self.providers = (
            ["CUDAExecutionProvider", "CPUExecutionProvider"]
            if device == "cuda"
            else ["CPUExecutionProvider"]
        )
        self.app: FaceAnalysis | None = None
        self._prepared: tuple[int, float] | None = None

    def load_models(self, asset_path: str, model_name: str) -> None:
        """Load detection and recognition models from ``asset_path``. No-op once loaded."""
        if self.app is not None:
            return
        logger.info("Loading %s from %s on %s", model_name, asset_path, self.device)
        self.app = FaceAnalysis(
            name=model_name,
            root=asset_path,
            providers=self.providers,
            allowed_modules=["detection", "recognition"],
        )

    def detect(self, image_path: str, config: DetectorConfig) -> list[Detection]:
        """Detect faces in an image file.

        Args:
            image_path: Path to the image file.
            config: Detector input size and score threshold.

        Returns:
            One Detection per face with an (x, y, width, height) box and a
            normalized descriptor.
        """
        if self.app is None:
            raise RuntimeError("Models not loaded")

        key = (config.input_size, config.score_threshold)
        if self._prepared != key:
            self.app.prepare(
                ctx_id=0 if self.device == "cuda" else -1,
                det_thresh=config.score_threshold,
                det_size=(config.input_size, config.input_size),
            )
            self._prepared = key

        img = cv2.imread(image_path)
        if img is None:
            raise ValueError(f"Cannot decode image: {image_path}")

        detections = []
        for face in self.app.get(img):
            x1, y1, x2, y2 = face.bbox.astype(float)
            detections.append(
                Detection(
                    bounding_box=BoundingBox(x=x1, y=y1, width=x2 - x1, height=y2 - y1),
                    confidence=float(face.det_score),
                    descriptor=face.normed_embedding.astype(np.float32).tolist(),
                )
            )
        return detections

"""Face worker process entry point.

Runs descriptor extraction in its own interpreter so that the native libraries
of the model stack are never loaded next to the host's image-processing code.
Speaks the line protocol in :mod:`photo_curator.faces.protocol` over
stdin/stdout; stderr is reserved for logging.

Usage: ``python -m photo_curator.faces.worker``
"""

import logging
import os
import sys
from typing import Protocol, TextIO

from photo_curator.exceptions import ProtocolError
from photo_curator.faces.protocol import (
    Detect,
    DetectResult,
    ErrorMessage,
    LoadModels,
    LoadModelsResult,
    Message,
    Ready,
    Shutdown,
    decode,
    encode,
    tag_of,
)
from photo_curator.models import Detection, DetectorConfig

logger = logging.getLogger(__name__)


class Extractor(Protocol):
    """Descriptor extraction capability hosted by the worker."""

    def load_models(self, asset_path: str, model_name: str) -> None: ...

    def detect(self, image_path: str, config: DetectorConfig) -> list[Detection]: ...


def serve(extractor: Extractor, stdin: TextIO, stdout: TextIO) -> None:
    """Answer requests until a shutdown message or end of input."""
    _send(stdout, Ready(pid=os.getpid()))
    logger.info("Worker %d ready", os.getpid())

    for line in stdin:
        if not line.strip():
            continue
        try:
            message = decode(line)
        except ProtocolError as e:
            logger.warning("Dropping malformed request: %s", e)
            _send(stdout, ErrorMessage(message=str(e)))
            continue

        if isinstance(message, Shutdown):
            logger.info("Shutdown requested")
            return
        _send(stdout, _handle(extractor, message))

    logger.info("Input closed, exiting")


def _handle(extractor: Extractor, message: Message) -> Message:
    match message:
        case LoadModels(asset_path=asset_path, model_name=model_name):
            try:
                extractor.load_models(asset_path, model_name)
            except Exception as e:
                logger.exception("Model load failed")
                return ErrorMessage(message=str(e) or type(e).__name__, request="load_models")
            return LoadModelsResult()
        case Detect(photo_id=photo_id, image_path=image_path):
            try:
                detections = extractor.detect(image_path, message.config)
            except Exception as e:
                logger.warning("Detection failed for photo %d: %s", photo_id, e)
                return ErrorMessage(
                    message=str(e) or type(e).__name__, request="detect", photo_id=photo_id
                )
            return DetectResult(photo_id=photo_id, detections=detections)
        case _:
            return ErrorMessage(message=f"Unexpected request: {tag_of(message)}")


def _send(stdout: TextIO, message: Message) -> None:
    stdout.write(encode(message))
    stdout.flush()


def main() -> None:
    # Libraries in the model stack print to stdout; keep the real stream for
    # protocol messages only.
    protocol_out = sys.stdout
    sys.stdout = sys.stderr

    from photo_curator.log import setup_logging

    setup_logging()

    from photo_curator.faces.extractor import InsightFaceExtractor

    serve(InsightFaceExtractor(), sys.stdin, protocol_out)


if __name__ == "__main__":
    main()

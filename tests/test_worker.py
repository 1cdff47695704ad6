"""Tests for the worker request loop, run in-process."""

import io

from photo_curator.faces.protocol import (
    Detect,
    DetectResult,
    ErrorMessage,
    LoadModels,
    LoadModelsResult,
    Ready,
    Shutdown,
    decode,
    encode,
)
from photo_curator.faces.worker import serve
from photo_curator.models import BoundingBox, Detection


class StubExtractor:
    def __init__(self, fail_load: bool = False) -> None:
        self.fail_load = fail_load
        self.loaded_from: list[str] = []
        self.configs = []

    def load_models(self, asset_path: str, model_name: str) -> None:
        if self.fail_load:
            raise OSError("model file missing")
        self.loaded_from.append(asset_path)

    def detect(self, image_path: str, config):
        self.configs.append(config)
        if image_path == "broken.jpg":
            raise ValueError("Cannot decode image: broken.jpg")
        return [Detection(BoundingBox(0, 0, 64, 64), 0.9, [1.0, 2.0])]


def run_worker(extractor, *requests) -> list:
    stdin = io.StringIO("".join(encode(r) for r in requests))
    stdout = io.StringIO()
    serve(extractor, stdin, stdout)
    return [decode(line) for line in stdout.getvalue().splitlines()]


def test_worker_signals_ready_first():
    responses = run_worker(StubExtractor())
    assert len(responses) == 1
    assert isinstance(responses[0], Ready)


def test_worker_answers_requests_in_order():
    extractor = StubExtractor()
    responses = run_worker(
        extractor,
        LoadModels(asset_path="/models", model_name="buffalo_l"),
        Detect(photo_id=5, image_path="a.jpg", input_size=128, score_threshold=0.4),
    )
    assert isinstance(responses[1], LoadModelsResult)
    assert isinstance(responses[2], DetectResult)
    assert responses[2].photo_id == 5
    assert responses[2].detections[0].descriptor == [1.0, 2.0]
    assert extractor.loaded_from == ["/models"]
    assert extractor.configs[0].input_size == 128


def test_worker_reports_errors_with_request_and_photo_id():
    responses = run_worker(
        StubExtractor(fail_load=True),
        LoadModels(asset_path="/models", model_name="buffalo_l"),
        Detect(photo_id=8, image_path="broken.jpg", input_size=256, score_threshold=0.5),
    )
    load_error, detect_error = responses[1], responses[2]
    assert load_error == ErrorMessage(message="model file missing", request="load_models")
    assert detect_error.request == "detect"
    assert detect_error.photo_id == 8
    assert "broken.jpg" in detect_error.message


def test_worker_stops_at_shutdown():
    responses = run_worker(
        StubExtractor(),
        Shutdown(),
        Detect(photo_id=1, image_path="a.jpg", input_size=256, score_threshold=0.5),
    )
    assert len(responses) == 1


def test_worker_survives_malformed_lines():
    stdin = io.StringIO('garbage\n\n{"type": "nope"}\n' + encode(LoadModels("/m", "buffalo_l")))
    stdout = io.StringIO()
    serve(StubExtractor(), stdin, stdout)
    responses = [decode(line) for line in stdout.getvalue().splitlines()]
    assert [type(r) for r in responses] == [Ready, ErrorMessage, ErrorMessage, LoadModelsResult]

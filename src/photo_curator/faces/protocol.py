"""Line-delimited JSON protocol between the host and the face worker process.

Each message is one JSON object per line with a ``type`` tag. Requests flow
host -> worker, responses worker -> host:

    {"type": "load_models", "asset_path": "...", "model_name": "buffalo_l"}
    {"type": "detect", "photo_id": 7, "image_path": "...", "input_size": 256, "score_threshold": 0.5}
    {"type": "shutdown"}

    {"type": "ready", "pid": 4242}
    {"type": "load_models_result"}
    {"type": "detect_result", "photo_id": 7, "detections": [...]}
    {"type": "error", "request": "detect", "photo_id": 7, "message": "..."}

Detection responses are correlated by ``photo_id``; errors carry the request
tag (and photo_id for detections) so the host can route them.
"""

import json
from dataclasses import dataclass, field

from photo_curator.exceptions import ProtocolError
from photo_curator.models import BoundingBox, Detection, DetectorConfig


@dataclass
class LoadModels:
    asset_path: str
    model_name: str


@dataclass
class Detect:
    photo_id: int
    image_path: str
    input_size: int
    score_threshold: float

    @property
    def config(self) -> DetectorConfig:
        return DetectorConfig(input_size=self.input_size, score_threshold=self.score_threshold)


@dataclass
class Shutdown:
    pass


@dataclass
class Ready:
    pid: int


@dataclass
class LoadModelsResult:
    pass


@dataclass
class DetectResult:
    photo_id: int
    detections: list[Detection] = field(default_factory=list)


@dataclass
class ErrorMessage:
    message: str
    request: str | None = None
    photo_id: int | None = None


Request = LoadModels | Detect | Shutdown
Response = Ready | LoadModelsResult | DetectResult | ErrorMessage
Message = Request | Response

_TAGS: dict[type, str] = {
    LoadModels: "load_models",
    Detect: "detect",
    Shutdown: "shutdown",
    Ready: "ready",
    LoadModelsResult: "load_models_result",
    DetectResult: "detect_result",
    ErrorMessage: "error",
}
_TYPES = {tag: cls for cls, tag in _TAGS.items()}


def tag_of(message: Message) -> str:
    return _TAGS[type(message)]


def encode(message: Message) -> str:
    """Serialize a message to a single JSON line (newline included)."""
    match message:
        case LoadModels(asset_path=asset_path, model_name=model_name):
            payload = {"asset_path": asset_path, "model_name": model_name}
        case Detect():
            payload = {
                "photo_id": message.photo_id,
                "image_path": message.image_path,
                "input_size": message.input_size,
                "score_threshold": message.score_threshold,
            }
        case Ready(pid=pid):
            payload = {"pid": pid}
        case DetectResult(photo_id=photo_id, detections=detections):
            payload = {
                "photo_id": photo_id,
                "detections": [_detection_to_dict(d) for d in detections],
            }
        case ErrorMessage(message=text, request=request, photo_id=photo_id):
            payload = {"message": text, "request": request, "photo_id": photo_id}
        case Shutdown() | LoadModelsResult():
            payload = {}
        case _:
            raise ProtocolError(f"Cannot encode {type(message).__name__}")
    return json.dumps({"type": tag_of(message), **payload}, separators=(",", ":")) + "\n"


def decode(line: str | bytes) -> Message:
    """Parse one JSON line into a message, raising ProtocolError on anything unexpected."""
    try:
        data = json.loads(line)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError(f"Invalid JSON on worker channel: {e}") from e
    if not isinstance(data, dict):
        raise ProtocolError("Worker message must be a JSON object")

    tag = data.pop("type", None)
    if tag not in _TYPES:
        raise ProtocolError(f"Unknown message type: {tag!r}", details={"type": tag})

    try:
        match tag:
            case "detect_result":
                return DetectResult(
                    photo_id=int(data["photo_id"]),
                    detections=[_detection_from_dict(d) for d in data.get("detections", [])],
                )
            case "detect":
                return Detect(
                    photo_id=int(data["photo_id"]),
                    image_path=str(data["image_path"]),
                    input_size=int(data["input_size"]),
                    score_threshold=float(data["score_threshold"]),
                )
            case _:
                return _TYPES[tag](**data)
    except (KeyError, TypeError, ValueError) as e:
        raise ProtocolError(f"Malformed {tag} message: {e}", details={"type": tag}) from e


def _detection_to_dict(detection: Detection) -> dict:
    box = detection.bounding_box
    return {
        "bbox": [box.x, box.y, box.width, box.height],
        "confidence": detection.confidence,
        "descriptor": [float(v) for v in detection.descriptor],
    }


def _detection_from_dict(data: dict) -> Detection:
    x, y, width, height = (float(v) for v in data["bbox"])
    return Detection(
        bounding_box=BoundingBox(x=x, y=y, width=width, height=height),
        confidence=float(data["confidence"]),
        descriptor=[float(v) for v in data["descriptor"]],
    )

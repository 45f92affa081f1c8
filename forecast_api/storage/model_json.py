"""JSON storage for the feed-forward model artifact.

An artifact is a single JSON document:
    {
        "modelTopology": {...} or "<json string>",
        "weightData": [{"name": ..., "shape": [...], "data": [...]}, ...],
        "format": "layers-model"
    }

modelTopology follows the Keras/TF.js sequential layout. Dense kernels are
stored as [in, out] and must be transposed into torch's [out, in] layout.
Loading validates every tensor before any weight is assigned, so a corrupt
artifact never produces a partially initialized model.
"""

import json
import logging
import math
from pathlib import Path
from typing import Any

import torch

from forecast_api.core.config import get_model_path
from forecast_api.core.model import DenseSpec, DropoutSpec, FeedForwardModel, LayerSpec
from forecast_api.domain.exceptions import ModelUnavailableError

logger = logging.getLogger(__name__)

ARTIFACT_FORMAT = "layers-model"


def _decode_topology(raw: Any, path: str) -> dict[str, Any] | list[Any]:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ModelUnavailableError(f"modelTopology is not valid JSON: {e}", model_path=path) from e
    if not isinstance(raw, dict | list):
        raise ModelUnavailableError("modelTopology must be an object", model_path=path)
    return raw


def _layer_entries(topology: dict[str, Any] | list[Any], path: str) -> list[dict[str, Any]]:
    """Extract the layer list from the possible sequential topology shapes."""
    node: Any = topology
    if isinstance(node, dict) and "model_config" in node:
        node = node["model_config"]
    if isinstance(node, dict):
        node = node.get("config", node)
    if isinstance(node, dict):
        node = node.get("layers")
    if not isinstance(node, list) or not node:
        raise ModelUnavailableError("modelTopology has no layers", model_path=path)
    return node


def _shape_width(config: dict[str, Any]) -> int | None:
    for key in ("batch_input_shape", "batchInputShape", "input_shape", "inputShape"):
        shape = config.get(key)
        if shape:
            return int(shape[-1])
    return None


def parse_topology(raw: Any, path: str = "") -> tuple[int, list[LayerSpec]]:
    """Parse a topology into (input_width, layer specs).

    Raises:
        ModelUnavailableError: unsupported layer or missing input width
    """
    entries = _layer_entries(_decode_topology(raw, path), path)
    input_width: int | None = None
    specs: list[LayerSpec] = []

    for entry in entries:
        if not isinstance(entry, dict):
            raise ModelUnavailableError(f"Layer entry must be an object, got {type(entry).__name__}", model_path=path)
        class_name = entry.get("class_name") or entry.get("className")
        config = entry.get("config", {})
        if not isinstance(config, dict):
            raise ModelUnavailableError(f"Layer {class_name} config must be an object", model_path=path)
        if input_width is None:
            input_width = _shape_width(config)

        if class_name == "InputLayer":
            continue
        if class_name == "Dense":
            units = int(config["units"])
            if units < 1:
                raise ModelUnavailableError(f"Dense layer units must be >= 1, got {units}", model_path=path)
            specs.append(
                DenseSpec(
                    units=units,
                    activation=config.get("activation") or "linear",
                    use_bias=bool(config.get("use_bias", config.get("useBias", True))),
                )
            )
        elif class_name == "Dropout":
            specs.append(DropoutSpec(rate=float(config.get("rate", 0.0))))
        else:
            raise ModelUnavailableError(f"Unsupported layer type: {class_name}", model_path=path)

    if input_width is None:
        raise ModelUnavailableError("modelTopology does not declare an input shape", model_path=path)
    return input_width, specs


def _weight_tensor(entry: Any, expected_shape: list[int], path: str) -> torch.Tensor:
    if not isinstance(entry, dict):
        raise ModelUnavailableError(f"Weight entry must be an object, got {type(entry).__name__}", model_path=path)
    name = entry.get("name", "?")
    shape = [int(s) for s in entry.get("shape", [])]
    data = entry.get("data")
    if shape != expected_shape:
        raise ModelUnavailableError(f"Weight {name} has shape {shape}, expected {expected_shape}", model_path=path)
    if not isinstance(data, list) or len(data) != math.prod(shape):
        raise ModelUnavailableError(f"Weight {name} payload does not match shape {shape}", model_path=path)
    tensor = torch.tensor(data, dtype=torch.float32).reshape(shape)
    if not torch.isfinite(tensor).all():
        raise ModelUnavailableError(f"Weight {name} contains non-finite values", model_path=path)
    return tensor


def _collect_weights(
    model: FeedForwardModel, weight_data: list[dict[str, Any]], path: str
) -> list[tuple[torch.Tensor, torch.Tensor | None]]:
    """Validate the flat weight list against the network, in order."""
    expected: list[tuple[list[int], list[int] | None]] = []
    for linear in model.dense_layers():
        kernel_shape = [linear.in_features, linear.out_features]
        bias_shape = [linear.out_features] if linear.bias is not None else None
        expected.append((kernel_shape, bias_shape))

    expected_count = sum(1 + (bias is not None) for _, bias in expected)
    if len(weight_data) != expected_count:
        raise ModelUnavailableError(
            f"Artifact has {len(weight_data)} weight tensors, topology needs {expected_count}",
            model_path=path,
        )

    tensors: list[tuple[torch.Tensor, torch.Tensor | None]] = []
    entries = iter(weight_data)
    for kernel_shape, bias_shape in expected:
        kernel = _weight_tensor(next(entries), kernel_shape, path)
        bias = _weight_tensor(next(entries), bias_shape, path) if bias_shape is not None else None
        tensors.append((kernel, bias))
    return tensors


def model_from_document(document: dict[str, Any], path: str = "") -> FeedForwardModel:
    """Build a model from a decoded artifact document.

    Raises:
        ModelUnavailableError: for any structural or numeric problem
    """
    if not isinstance(document, dict) or "modelTopology" not in document or "weightData" not in document:
        raise ModelUnavailableError("Artifact must contain modelTopology and weightData", model_path=path)

    try:
        input_width, specs = parse_topology(document["modelTopology"], path)
        model = FeedForwardModel(input_width, specs)
    except (KeyError, TypeError, ValueError, RuntimeError) as e:
        raise ModelUnavailableError(f"Invalid model topology: {e}", model_path=path) from e

    weight_data = document["weightData"]
    if not isinstance(weight_data, list):
        raise ModelUnavailableError("weightData must be a list", model_path=path)
    try:
        tensors = _collect_weights(model, weight_data, path)
    except (TypeError, ValueError, RuntimeError) as e:
        raise ModelUnavailableError(f"Invalid weight data: {e}", model_path=path) from e

    with torch.no_grad():
        for linear, (kernel, bias) in zip(model.dense_layers(), tensors):
            linear.weight.copy_(kernel.T)
            if bias is not None:
                linear.bias.copy_(bias)
    model.eval()
    return model


def load_model_artifact(path: Path | str) -> FeedForwardModel:
    """Load a model artifact from disk.

    Raises:
        ModelUnavailableError: file missing, unreadable, or invalid
    """
    path = Path(path)
    if not path.exists():
        raise ModelUnavailableError(f"Model artifact not found at {path}", model_path=str(path))
    try:
        with open(path) as f:
            document = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ModelUnavailableError(f"Could not read model artifact {path}: {e}", model_path=str(path)) from e
    return model_from_document(document, str(path))


def model_to_document(model: FeedForwardModel) -> dict[str, Any]:
    """Serialize a model into the artifact document format."""
    layers: list[dict[str, Any]] = []
    for index, spec in enumerate(model.layer_specs):
        if isinstance(spec, DenseSpec):
            config: dict[str, Any] = {
                "name": f"dense_{index}",
                "units": spec.units,
                "activation": spec.activation,
                "use_bias": spec.use_bias,
            }
            class_name = "Dense"
        else:
            config = {"name": f"dropout_{index}", "rate": spec.rate}
            class_name = "Dropout"
        if index == 0:
            config["batch_input_shape"] = [None, model.input_width]
        layers.append({"class_name": class_name, "config": config})

    weight_data: list[dict[str, Any]] = []
    for index, linear in enumerate(model.dense_layers()):
        kernel = linear.weight.detach().cpu().T
        weight_data.append(
            {"name": f"dense_{index}/kernel", "shape": list(kernel.shape), "data": kernel.reshape(-1).tolist()}
        )
        if linear.bias is not None:
            bias = linear.bias.detach().cpu()
            weight_data.append({"name": f"dense_{index}/bias", "shape": list(bias.shape), "data": bias.tolist()})

    return {
        "modelTopology": {"class_name": "Sequential", "config": {"name": "sequential", "layers": layers}},
        "weightData": weight_data,
        "format": ARTIFACT_FORMAT,
        "generatedBy": "forecast_api",
    }


def write_model_artifact(model: FeedForwardModel, path: Path | str) -> Path:
    """Write a model artifact to disk, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(model_to_document(model), f, indent=2)
    return path


class ModelStorage:
    """Local filesystem storage for the prediction model artifact.

    The artifact path defaults to FORECAST_MODEL_PATH (see core.config).
    """

    def __init__(self, model_path: Path | str | None = None):
        self.model_path = Path(model_path) if model_path is not None else get_model_path()

    def exists(self) -> bool:
        """Check if the artifact file exists."""
        return self.model_path.exists()

    def load(self) -> FeedForwardModel:
        """Load the model, all-or-nothing."""
        model = load_model_artifact(self.model_path)
        logger.info(f"[Model] Loaded {self.model_path} (input_width={model.input_width})")
        return model

    def write(self, model: FeedForwardModel) -> Path:
        """Persist a model to the configured path."""
        return write_model_artifact(model, self.model_path)

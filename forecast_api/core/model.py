"""Feed-forward regression model for next-day relative price change.

The network is a plain stack of dense and dropout layers described by a
layer topology, so an artifact exported from a Keras-style sequential model
can be rebuilt layer for layer.
"""

from dataclasses import dataclass
from typing import Protocol

import numpy as np
import torch
import torch.nn as nn

SUPPORTED_ACTIVATIONS = ("linear", "relu", "sigmoid", "tanh")


class TrainedModel(Protocol):
    """Anything that maps (batch, input_width) features to relative changes."""

    input_width: int

    def predict(self, batch: np.ndarray) -> np.ndarray:
        """Return one predicted relative change per row of batch."""
        ...


@dataclass(frozen=True)
class DenseSpec:
    """Fully connected layer."""

    units: int
    activation: str = "linear"
    use_bias: bool = True


@dataclass(frozen=True)
class DropoutSpec:
    """Dropout layer (identity at inference time)."""

    rate: float


LayerSpec = DenseSpec | DropoutSpec


def _activation_module(name: str) -> nn.Module:
    if name == "relu":
        return nn.ReLU()
    if name == "sigmoid":
        return nn.Sigmoid()
    if name == "tanh":
        return nn.Tanh()
    return nn.Identity()


class FeedForwardModel(nn.Module):
    """Dense network predicting a single relative close-to-close change."""

    def __init__(self, input_width: int, layers: list[LayerSpec]):
        super().__init__()
        if input_width < 1:
            raise ValueError(f"input_width must be >= 1, got {input_width}")
        dense = [spec for spec in layers if isinstance(spec, DenseSpec)]
        if not dense or dense[-1].units != 1:
            raise ValueError("Last dense layer must have exactly 1 unit")

        self.input_width = input_width
        self.layer_specs = list(layers)

        modules: list[nn.Module] = []
        width = input_width
        for spec in layers:
            if isinstance(spec, DenseSpec):
                if spec.activation not in SUPPORTED_ACTIVATIONS:
                    raise ValueError(f"Unsupported activation: {spec.activation}")
                modules.append(nn.Linear(width, spec.units, bias=spec.use_bias))
                modules.append(_activation_module(spec.activation))
                width = spec.units
            else:
                modules.append(nn.Dropout(spec.rate))
        self.net = nn.Sequential(*modules)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """Forward pass.

        Args:
            x: Input tensor of shape (batch, input_width)

        Returns:
            Output tensor of shape (batch, 1)
        """
        return self.net(x)

    def dense_layers(self) -> list[nn.Linear]:
        """Linear modules in network order."""
        return [m for m in self.net if isinstance(m, nn.Linear)]

    def predict(self, batch: np.ndarray) -> np.ndarray:
        """Run a single forward pass in eval mode.

        Args:
            batch: Array of shape (n, input_width)

        Returns:
            float64 array of shape (n,)
        """
        self.eval()
        with torch.no_grad():
            x = torch.as_tensor(np.asarray(batch, dtype=np.float32))
            out = self(x)
        return out.cpu().numpy().reshape(-1).astype(np.float64)

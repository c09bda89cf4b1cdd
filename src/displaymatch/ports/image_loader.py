# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union

import numpy as np


class ImageLoaderPort(ABC):
    """Abstract interface for reading and writing grayscale images."""

    @abstractmethod
    def supports(self, path: Path) -> bool:
        """Cheap check (extension) whether `load` should be attempted."""
        raise NotImplementedError

    @abstractmethod
    def load(self, path: Union[str, Path]) -> np.ndarray:
        """Return the image as a 2-D uint8 array. Raises ImageLoadError."""
        raise NotImplementedError

    @abstractmethod
    def save(self, image: np.ndarray, path: Union[str, Path]) -> Path:
        """Write the image and return the path written."""
        raise NotImplementedError

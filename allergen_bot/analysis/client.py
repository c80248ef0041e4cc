"""AnalysisRequester — abstract base for allergen analysis backends."""
from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from allergen_bot.models import AnalysisResult, ImageRequest, TextRequest

R = TypeVar("R", ImageRequest, TextRequest)


class AnalysisRequester(ABC, Generic[R]):
    @abstractmethod
    async def request(self, req: R) -> AnalysisResult:
        """Ask the model about one request and normalize its answer. Raises on transport failure."""
        ...

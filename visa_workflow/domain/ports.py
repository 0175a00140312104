from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from visa_workflow.domain.types import University, VisaSubmission


class IVisaProcessRepository(ABC):
    """
    Remote store of visa process records.
    Implementations raise VisaServiceError for transport or service failures.
    """
    @abstractmethod
    async def get_visa_process(self, university_id: str, student_id: str) -> Optional[Any]:
        """Returns the raw payload, or None when the backend has no record."""
        pass
    @abstractmethod
    async def create_visa_process(self, submission: VisaSubmission) -> Dict[str, Any]:
        pass
    @abstractmethod
    async def update_visa_process(self, record_id: str, submission: VisaSubmission) -> Dict[str, Any]:
        pass


class IUniversityDirectory(ABC):
    @abstractmethod
    async def list_universities(self) -> List[University]:
        pass

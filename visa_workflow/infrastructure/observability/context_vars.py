from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

# Context Variables for the active workflow
student_id_ctx: ContextVar[Optional[str]] = ContextVar("student_id", default=None)
university_id_ctx: ContextVar[Optional[str]] = ContextVar("university_id", default=None)


def get_student_id() -> Optional[str]:
    return student_id_ctx.get()


def get_university_id() -> Optional[str]:
    return university_id_ctx.get()


@contextmanager
def workflow_context(student_id: Optional[str], university_id: Optional[str]) -> Iterator[None]:
    """
    Binds the workflow identity for the duration of one orchestrator operation.
    """
    student_token = student_id_ctx.set(student_id)
    university_token = university_id_ctx.set(university_id)
    try:
        yield
    finally:
        university_id_ctx.reset(university_token)
        student_id_ctx.reset(student_token)

"""
Temporal decorators for turning protocol implementations into activities
and protocols into workflow proxies.

Both decorators look at the same set of methods: the public async methods
declared on the Protocol classes in the decorated class's MRO. An activity
named ``<base>.<method>`` is registered for each of them on the
implementation side, and the proxy side calls exactly those names.
"""

import functools
import inspect
import logging
from datetime import timedelta
from typing import Any, Callable, Dict, Optional, Type, TypeVar

from pydantic import BaseModel
from temporalio import activity, workflow
from temporalio.common import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _discover_protocol_methods(cls: type) -> Dict[str, Callable[..., Any]]:
    """Map method name to function for every public async protocol method
    found along ``cls.__mro__``."""
    methods: Dict[str, Callable[..., Any]] = {}
    for base in cls.__mro__:
        if base is object or not getattr(base, "_is_protocol", False):
            continue
        for name, member in base.__dict__.items():
            if name.startswith("_") or name in methods:
                continue
            if inspect.iscoroutinefunction(member):
                methods[name] = member

    logger.debug(
        "Discovered protocol methods",
        extra={"class_name": cls.__name__, "methods": sorted(methods)},
    )
    return methods


def temporal_activity_registration(
    activity_prefix: str,
) -> Callable[[Type[T]], Type[T]]:
    """
    Class decorator that registers every protocol method of an
    implementation as a Temporal activity named ``<prefix>.<method>``.

    Example:
        @temporal_activity_registration("pharmacy.notification_sender")
        class TemporalNotificationSender(MockNotificationSender):
            pass
    """

    def decorator(cls: Type[T]) -> Type[T]:
        for name in _discover_protocol_methods(cls):
            # Resolve through the MRO so the concrete implementation is
            # wrapped rather than the protocol stub.
            implementation = getattr(cls, name)

            def make_activity(
                implementation: Callable[..., Any], name: str
            ) -> Callable[..., Any]:
                @functools.wraps(implementation)
                async def run_activity(*args: Any, **kwargs: Any) -> Any:
                    return await implementation(*args, **kwargs)

                run_activity.__qualname__ = f"{cls.__name__}.{name}"
                return activity.defn(name=f"{activity_prefix}.{name}")(
                    run_activity
                )

            setattr(cls, name, make_activity(implementation, name))

        logger.debug(
            "Registered activities",
            extra={"class_name": cls.__name__, "prefix": activity_prefix},
        )
        return cls

    return decorator


def temporal_workflow_proxy(
    activity_base: str,
    default_timeout_seconds: int = 30,
    maximum_attempts: Optional[int] = None,
) -> Callable[[Type[T]], Type[T]]:
    """
    Class decorator that implements every protocol method of a proxy class
    as a ``workflow.execute_activity`` call to ``<activity_base>.<method>``.

    Only positional arguments are forwarded. Return values annotated with a
    Pydantic model are validated back into that model.

    Args:
        activity_base: Activity name prefix the worker registered
        default_timeout_seconds: start_to_close timeout of each activity
        maximum_attempts: Retry limit; None keeps Temporal's default policy
    """
    timeout = timedelta(seconds=default_timeout_seconds)
    retry_policy = (
        RetryPolicy(
            initial_interval=timedelta(seconds=1),
            maximum_attempts=maximum_attempts,
        )
        if maximum_attempts is not None
        else None
    )

    def decorator(cls: Type[T]) -> Type[T]:
        for name, declared in _discover_protocol_methods(cls).items():
            return_type = inspect.signature(declared).return_annotation

            def make_method(
                name: str, declared: Callable[..., Any], return_type: Any
            ) -> Callable[..., Any]:
                activity_name = f"{activity_base}.{name}"

                @functools.wraps(declared)
                async def call_activity(
                    self: Any, *args: Any, **kwargs: Any
                ) -> Any:
                    if kwargs:
                        raise ValueError(
                            f"Workflow proxy {activity_name} only accepts "
                            "positional arguments"
                        )
                    result = await workflow.execute_activity(
                        activity_name,
                        args=args,
                        start_to_close_timeout=timeout,
                        retry_policy=retry_policy,
                    )
                    if (
                        result is not None
                        and inspect.isclass(return_type)
                        and issubclass(return_type, BaseModel)
                    ):
                        return return_type.model_validate(result)
                    return result

                return call_activity

            setattr(cls, name, make_method(name, declared, return_type))

        return cls

    return decorator

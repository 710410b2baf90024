import functools
import inspect
import json
import logging
from typing import Optional

from fastapi import BackgroundTasks, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from copo import database
from copo.models.system import ActivityLog
from copo.security import session_user_id

logger = logging.getLogger(__name__)

def describe(action: str, entity_type: str, entity_id: Optional[int] = None) -> str:
    if entity_id is not None:
        return f"{action} {entity_type} with ID {entity_id}"
    return f"{action} {entity_type}"

def extract_entity_id(body) -> Optional[int]:
    """Pull the ``id`` out of whatever the handler returned, if it has one."""
    if isinstance(body, Response):
        if body.media_type != "application/json" or not body.body:
            return None
        try:
            body = json.loads(body.body)
        except ValueError:
            return None
    if isinstance(body, dict):
        value = body.get("id")
    else:
        value = getattr(body, "id", None)
    # bool is an int subclass
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None

async def record_activity(
    db: AsyncSession,
    user_id: int,
    action: str,
    entity_type: str,
    entity_id: Optional[int] = None,
    details: Optional[str] = None,
    commit: bool = True,
) -> ActivityLog:
    """Write an activity log row inside the caller's session."""
    log = ActivityLog(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or describe(action, entity_type, entity_id),
    )
    db.add(log)
    if commit:
        await db.commit()
    else:
        await db.flush()
    return log

async def write_activity_log(user_id: int, action: str, entity_type: str, entity_id: Optional[int], details: str):
    # Runs after the response went out, failures must never reach the caller
    try:
        async with database.SessionLocal() as db:
            await record_activity(db, user_id, action, entity_type, entity_id, details)
    except Exception:
        logger.exception(f"Failed to write activity log: user={user_id} action={action} entity={entity_type}")

def find_param(signature: inspect.Signature, annotation) -> Optional[str]:
    for param in signature.parameters.values():
        if param.annotation is annotation:
            return param.name
    return None

def audited(action: str, entity_type: str):
    """
    Decorate a route function so every successful call by a logged-in user
    leaves one ActivityLog row.

    The actor is taken from the session before the handler runs, so a
    handler that logs somebody in (first-user bootstrap) is not attributed
    to them. Handlers that raise are never logged. The row is written by a
    background task once the response body has been produced.
    """
    def decorator(endpoint):
        signature = inspect.signature(endpoint)
        # Path id of the handler, used when the response carries no id (deletes)
        first = next(iter(signature.parameters), None)
        id_param = first if first and first.endswith("_id") else None

        # FastAPI hands a Request or BackgroundTasks to one parameter only, so reuse the handler's own
        request_param = find_param(signature, Request)
        tasks_param = find_param(signature, BackgroundTasks)
        extra = []
        if request_param is None:
            request_param = "audit_request"
            extra.append(inspect.Parameter(request_param, inspect.Parameter.KEYWORD_ONLY, annotation=Request))
        if tasks_param is None:
            tasks_param = "audit_tasks"
            extra.append(inspect.Parameter(tasks_param, inspect.Parameter.KEYWORD_ONLY, annotation=BackgroundTasks))
        added = {p.name for p in extra}

        @functools.wraps(endpoint)
        async def wrapper(*args, **kwargs):
            request = kwargs[request_param]
            tasks = kwargs[tasks_param]
            handler_kwargs = {k: v for k, v in kwargs.items() if k not in added}

            actor_id = session_user_id(request)
            result = await endpoint(*args, **handler_kwargs)

            status_code = result.status_code if isinstance(result, Response) else 200
            if actor_id and 200 <= status_code < 300:
                entity_id = extract_entity_id(result)
                if entity_id is None and id_param:
                    entity_id = extract_entity_id({"id": kwargs.get(id_param)})
                tasks.add_task(
                    write_activity_log,
                    actor_id,
                    action,
                    entity_type,
                    entity_id,
                    describe(action, entity_type, entity_id),
                )
            return result

        wrapper.__signature__ = signature.replace(parameters=[*signature.parameters.values(), *extra])
        return wrapper

    return decorator

# app/lambdas/save_api/handler.py
import logging

from tasknotes.config import LENIENT, credentials_status, load_settings, log_level
from tasknotes.errors import AuthError, ConfigurationError, ConnectivityError, PayloadError, QueryError
from tasknotes.gateway import SupabaseGateway
from tasknotes.http import debug_block, error_response, json_body, json_response, method_of, options_response
from tasknotes.init_data import authenticate
from tasknotes.store import save_items

logger = logging.getLogger()
logger.setLevel(log_level())

ALLOWED_METHODS = "POST, OPTIONS"

LOCAL_FALLBACK_MESSAGE = "Data kept locally (database unavailable)"


def make_gateway(settings):
    return SupabaseGateway.connect(settings)


def _count(items):
    return len(items) if isinstance(items, list) else 0


def lambda_handler(event, context):
    """
    POST /save  {initData, tasks, notes}

    Replaces the caller's tasks and notes with the supplied lists. A save
    without an identity is always a 400; store failures follow SAVE_POLICY.
    """
    method = method_of(event)
    if method == "OPTIONS":
        return options_response(ALLOWED_METHODS)
    if method != "POST":
        return error_response(405, "Method not allowed", ALLOWED_METHODS)

    try:
        settings = load_settings()
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return error_response(500, str(e), ALLOWED_METHODS, **credentials_status())

    try:
        body = json_body(event)
    except ValueError as e:
        return error_response(400, str(e), ALLOWED_METHODS)

    tasks = body.get("tasks")
    notes = body.get("notes")
    init_data = body.get("initData")
    logger.info(
        "Save request: initData present=%s tasks=%d notes=%d",
        bool(init_data), _count(tasks), _count(notes),
    )

    try:
        user = authenticate(init_data, settings.bot_token, settings.init_data_max_age)
    except AuthError as e:
        logger.warning("initData rejected: %s", e)
        return error_response(400, "User data not found in initData", ALLOWED_METHODS, reason=str(e))

    logger.info("Saving data for user %s", user.id)

    try:
        gateway = make_gateway(settings)
        result = save_items(gateway, user, tasks, notes, settings.save_policy, settings.replace_rpc)
    except PayloadError as e:
        return error_response(400, str(e), ALLOWED_METHODS)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return error_response(500, str(e), ALLOWED_METHODS, mode="configuration-error")
    except (ConnectivityError, QueryError) as e:
        return error_response(500, str(e), ALLOWED_METHODS, mode="error", step=e.step, userId=user.id)
    except Exception as e:
        logger.exception("Unexpected save failure for user %s", user.id)
        if settings.save_policy == LENIENT:
            return json_response(
                200,
                {
                    "success": True,
                    "message": LOCAL_FALLBACK_MESSAGE,
                    "debug": debug_block(mode="error-fallback", error=str(e), errorType=type(e).__name__),
                },
                ALLOWED_METHODS,
            )
        return error_response(500, "Internal error", ALLOWED_METHODS, mode="error", errorType=type(e).__name__)

    if result.mode == "local-fallback":
        message = LOCAL_FALLBACK_MESSAGE
    else:
        message = f"Saved {result.saved_tasks} tasks, {result.saved_notes} notes"

    debug = {
        "userId": user.id,
        "savedTasks": result.saved_tasks,
        "savedNotes": result.saved_notes,
        "requestedTasks": result.requested_tasks,
        "requestedNotes": result.requested_notes,
    }
    if result.failed_steps:
        debug["failedSteps"] = result.failed_steps
    if result.errors:
        debug["errors"] = result.errors

    return json_response(
        200,
        {"success": True, "message": message, "debug": debug_block(mode=result.mode, **debug)},
        ALLOWED_METHODS,
    )

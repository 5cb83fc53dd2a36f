# app/lambdas/load_api/handler.py
import logging

from tasknotes.config import LENIENT, credentials_status, load_settings, log_level
from tasknotes.errors import AuthError, ConfigurationError, ConnectivityError, QueryError
from tasknotes.gateway import SupabaseGateway
from tasknotes.http import debug_block, error_response, json_response, method_of, options_response, query_param
from tasknotes.init_data import authenticate
from tasknotes.store import load_items

logger = logging.getLogger()
logger.setLevel(log_level())

ALLOWED_METHODS = "GET, OPTIONS"


def make_gateway(settings):
    return SupabaseGateway.connect(settings)


def _empty(mode, **debug):
    return json_response(
        200,
        {"tasks": [], "notes": [], "debug": debug_block(mode=mode, **debug)},
        ALLOWED_METHODS,
    )


def lambda_handler(event, context):
    """
    GET /load?initData=<token>

    Returns the caller's tasks and notes, newest first. Reads without a
    usable identity return empty lists; store failures follow LOAD_POLICY.
    """
    method = method_of(event)
    if method == "OPTIONS":
        return options_response(ALLOWED_METHODS)
    if method != "GET":
        return error_response(405, "Method not allowed", ALLOWED_METHODS)

    init_data = query_param(event, "initData")
    logger.info("Load request: initData present=%s", bool(init_data))

    try:
        settings = load_settings()
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return error_response(500, str(e), ALLOWED_METHODS, **credentials_status())

    if not init_data:
        logger.info("No initData, returning empty lists")
        return _empty("no-auth")

    try:
        user = authenticate(init_data, settings.bot_token, settings.init_data_max_age)
    except AuthError as e:
        logger.warning("initData rejected: %s", e)
        return _empty("auth-error", error=str(e))

    logger.info("Loading data for user %s", user.id)

    try:
        gateway = make_gateway(settings)
        result = load_items(gateway, user.id, settings.load_policy, settings.load_limit)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return error_response(500, str(e), ALLOWED_METHODS, mode="configuration-error")
    except (ConnectivityError, QueryError) as e:
        return error_response(500, str(e), ALLOWED_METHODS, mode="error", userId=user.id)
    except Exception as e:
        logger.exception("Unexpected load failure for user %s", user.id)
        if settings.load_policy == LENIENT:
            return _empty("error-fallback", error=str(e), errorType=type(e).__name__)
        return error_response(500, "Internal error", ALLOWED_METHODS, mode="error", errorType=type(e).__name__)

    debug = {"userId": user.id, "loadedTasks": len(result.tasks), "loadedNotes": len(result.notes)}
    if result.errors:
        debug["errors"] = result.errors

    return json_response(
        200,
        {"tasks": result.tasks, "notes": result.notes, "debug": debug_block(mode=result.mode, **debug)},
        ALLOWED_METHODS,
    )

"""
Command-line interface for the focus blocker engine.

This module provides the main CLI entry point with commands for:
- rules: Manage block rules
- check: Ask whether a website or app is blocked right now
- strict: Strict mode tied to a focus session
- nuclear: Time-bounded lock without manual override
- permissions: Probe enforcement capabilities and show setup instructions
- stats: Block statistics
- config: Configuration management
- run: Keep the engine clock running
"""

import argparse
import asyncio
import json
import os
import sys
from datetime import timedelta
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from . import __version__
from .audit_logger import AuditLogger
from .categories import list_categories
from .config import (
    DEFAULT_HMAC_SECRET,
    ClockConfig,
    EngineConfig,
    LoggingConfig,
    NotificationConfig,
    NuclearConfig,
    PersistenceConfig,
    ProbeConfig,
    RetryConfig,
    WebhookConfig,
    validate_config,
)
from .enforcement import InMemorySessionContext, SessionContext, TimedSessionContext
from .engine import BlockingEngine, local_now
from .enums import RuleType, ScheduleType, Strictness
from .exceptions import BlockingError, PreconditionFailedError, TamperingError, ValidationError
from .i18n import get_message
from .identifiers import RuleId
from .models import CreateRuleRequest, RuleFilter, target_text
from .permissions import default_hosts_path
from .state_store import SessionStore


DEFAULT_HOME = Path.home() / ".focus_blocker"
DEFAULT_CONFIG_PATH = DEFAULT_HOME / "config.json"

# Environment variables that override the configuration file
ENV_STATE_FILE = "FOCUS_BLOCKER_STATE_FILE"
ENV_HMAC_SECRET = "FOCUS_BLOCKER_HMAC_SECRET"
ENV_LOG_LEVEL = "FOCUS_BLOCKER_LOG_LEVEL"
ENV_LANGUAGE = "FOCUS_BLOCKER_LANGUAGE"
ENV_HOSTS_FILE = "FOCUS_BLOCKER_HOSTS_FILE"


def create_default_config(
    language: str = "de",
    state_file: Optional[Path] = None,
    hmac_secret: str = DEFAULT_HMAC_SECRET,
) -> EngineConfig:
    """
    Create a default engine configuration.

    Args:
        language: Output language ('de' or 'en')
        state_file: Path to state file for persistence
        hmac_secret: Secret for HMAC protection

    Returns:
        EngineConfig with default settings
    """
    if state_file is None:
        state_file = DEFAULT_HOME / "state.json"

    return EngineConfig(
        persistence=PersistenceConfig(
            state_file_path=state_file,
            hmac_secret=hmac_secret,
        ),
        logging=LoggingConfig(
            level="warn",
            output_format="text",
        ),
        probes=ProbeConfig(hosts_file_path=default_hosts_path()),
        language=language,
    )


def load_config_from_file(config_path: Path) -> Optional[EngineConfig]:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        EngineConfig if successful, None otherwise
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError):
        return None

    try:
        return config_from_dict(data)
    except (KeyError, TypeError, ValueError, AttributeError):
        return None


def config_from_dict(data: dict) -> EngineConfig:
    persistence_data = data.get("persistence")
    persistence = None
    if persistence_data:
        persistence = PersistenceConfig(
            state_file_path=Path(persistence_data["state_file_path"]),
            hmac_secret=persistence_data["hmac_secret"],
        )

    logging_data = data.get("logging", {})
    logging_config = LoggingConfig(
        level=logging_data.get("level", "info"),
        audit_mode=logging_data.get("audit_mode", False),
        audit_signing_key=logging_data.get("audit_signing_key"),
        output_format=logging_data.get("output_format", "both"),
    )

    probes_data = data.get("probes", {})
    probes = ProbeConfig(
        hosts_file_path=probes_data.get("hosts_file_path", default_hosts_path()),
        timeout_seconds=float(probes_data.get("timeout_seconds", 5.0)),
    )

    nuclear = NuclearConfig(
        allowed_durations=data.get("nuclear", {}).get("allowed_durations"),
    )
    clock = ClockConfig(
        tick_seconds=float(data.get("clock", {}).get("tick_seconds", 60.0)),
    )

    notifications_data = data.get("notifications", {})
    webhook = None
    if notifications_data.get("webhook"):
        webhook = WebhookConfig(
            url=notifications_data["webhook"]["url"],
            headers=notifications_data["webhook"].get("headers", {}),
        )
    retry_data = notifications_data.get("retry", {})
    notifications = NotificationConfig(
        webhook=webhook,
        retry=RetryConfig(
            max_retries=retry_data.get("max_retries", 3),
            base_delay_seconds=retry_data.get("base_delay_seconds", 1.0),
            max_delay_seconds=retry_data.get("max_delay_seconds", 60.0),
        ),
    )

    return EngineConfig(
        persistence=persistence,
        logging=logging_config,
        probes=probes,
        nuclear=nuclear,
        clock=clock,
        notifications=notifications,
        language=data.get("language", "de"),
    )


def config_to_dict(config: EngineConfig) -> dict:
    data: dict = {
        "language": config.language,
        "logging": {
            "level": config.logging.level,
            "audit_mode": config.logging.audit_mode,
            "audit_signing_key": config.logging.audit_signing_key,
            "output_format": config.logging.output_format,
        },
        "probes": {
            "hosts_file_path": config.probes.hosts_file_path,
            "timeout_seconds": config.probes.timeout_seconds,
        },
        "nuclear": {"allowed_durations": config.nuclear.allowed_durations},
        "clock": {"tick_seconds": config.clock.tick_seconds},
        "notifications": {
            "retry": {
                "max_retries": config.notifications.retry.max_retries,
                "base_delay_seconds": config.notifications.retry.base_delay_seconds,
                "max_delay_seconds": config.notifications.retry.max_delay_seconds,
            },
        },
    }
    if config.persistence is not None:
        data["persistence"] = {
            "state_file_path": str(config.persistence.state_file_path),
            "hmac_secret": config.persistence.hmac_secret,
        }
    if config.notifications.webhook is not None:
        data["notifications"]["webhook"] = {
            "url": config.notifications.webhook.url,
            "headers": config.notifications.webhook.headers,
        }
    return data


def save_config_to_file(config: EngineConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(config_to_dict(config), f, indent=2, ensure_ascii=False)
        return True
    except OSError as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False


def apply_env_overrides(config: EngineConfig) -> EngineConfig:
    """
    Apply FOCUS_BLOCKER_* environment variables (and a .env file) on top
    of a configuration.
    """
    load_dotenv()

    state_file = os.getenv(ENV_STATE_FILE, "").strip()
    hmac_secret = os.getenv(ENV_HMAC_SECRET, "").strip()
    if state_file or hmac_secret:
        current = config.persistence or PersistenceConfig(
            state_file_path=DEFAULT_HOME / "state.json",
            hmac_secret=DEFAULT_HMAC_SECRET,
        )
        config.persistence = PersistenceConfig(
            state_file_path=Path(state_file) if state_file else current.state_file_path,
            hmac_secret=hmac_secret or current.hmac_secret,
        )

    log_level = os.getenv(ENV_LOG_LEVEL, "").strip().lower()
    if log_level:
        config.logging.level = log_level

    language = os.getenv(ENV_LANGUAGE, "").strip().lower()
    if language:
        config.language = language

    hosts_file = os.getenv(ENV_HOSTS_FILE, "").strip()
    if hosts_file:
        config.probes.hosts_file_path = hosts_file

    return config


def load_effective_config(args: argparse.Namespace) -> EngineConfig:
    """Configuration file (or defaults) with environment and flag overrides."""
    config_path = Path(args.config) if args.config else DEFAULT_CONFIG_PATH
    config = load_config_from_file(config_path) if config_path.exists() else None
    if config is None:
        config = create_default_config()

    config = apply_env_overrides(config)
    if getattr(args, "language", None):
        config.language = args.language
    if getattr(args, "verbose", False):
        config.logging.level = "debug"
    return config


def build_engine(
    config: EngineConfig,
    session_context: Optional[SessionContext] = None,
) -> BlockingEngine:
    logger = AuditLogger.from_config(config.logging)
    return BlockingEngine.from_config(
        config,
        session_context=session_context,
        logger=logger,
    )


def session_store(config: EngineConfig) -> Optional[SessionStore]:
    """Signed store for command-line focus sessions, beside the state file."""
    if config.persistence is None:
        return None
    state_file = Path(config.persistence.state_file_path)
    return SessionStore(
        state_file.with_name(state_file.stem + ".sessions.json"),
        config.persistence.hmac_secret,
    )


def _finish(engine: BlockingEngine) -> None:
    """Deliver lock notifications queued by the command."""
    asyncio.run(engine.flush_notifications())


def _yes_no(value: bool, language: str) -> str:
    if language == "de":
        return "ja" if value else "nein"
    return "yes" if value else "no"


def cmd_rules(args: argparse.Namespace) -> int:
    """Handle the 'rules' command."""
    config = load_effective_config(args)
    lang = config.language
    engine = build_engine(config)

    if args.rules_action == "list":
        rule_filter = RuleFilter(
            rule_type=RuleType(args.type) if args.type else None,
            enabled=None if args.enabled is None else args.enabled == "yes",
        )
        rules = engine.list_rules(rule_filter)
        if not rules:
            print(get_message("cli.rules.none", lang))
            return 0
        for rule in rules:
            schedule = rule.schedule_type.value
            if rule.schedule_cron is not None:
                schedule += f" '{rule.schedule_cron.value}'"
            state = "on" if rule.enabled else "off"
            print(
                f"{rule.id.value}  {rule.rule_type.value:<8} {target_text(rule):<30} "
                f"{rule.strictness.value:<6} {state:<3} {schedule}"
            )
        return 0

    if args.rules_action == "add":
        rule = engine.create_rule(
            CreateRuleRequest(
                rule_type=RuleType(args.type),
                target=args.target,
                schedule_type=ScheduleType(args.schedule),
                schedule_cron=args.cron,
                strictness=Strictness(args.strictness),
                enabled=not args.disabled,
            )
        )
        print(get_message("cli.rules.created", lang, rule_id=rule.id.value, target=target_text(rule)))
        return 0

    rule_id = RuleId(args.rule_id)
    if args.rules_action == "remove":
        engine.remove_rule(rule_id)
        print(get_message("cli.rules.removed", lang, rule_id=rule_id.value))
    elif args.rules_action == "enable":
        engine.set_enabled(rule_id, True)
        print(get_message("cli.rules.enabled", lang, rule_id=rule_id.value))
    elif args.rules_action == "disable":
        engine.set_enabled(rule_id, False)
        print(get_message("cli.rules.disabled", lang, rule_id=rule_id.value))
    elif args.rules_action == "strictness":
        engine.set_strictness(rule_id, Strictness(args.level))
        print(get_message(
            "cli.rules.strictness_changed", lang, rule_id=rule_id.value, strictness=args.level
        ))
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    """Handle the 'check' command. Exit code 2 means blocked."""
    config = load_effective_config(args)
    session_context = InMemorySessionContext()
    if args.session:
        session_context.start_session(args.session)
    engine = build_engine(config, session_context)

    blocked = engine.is_blocking_active_for(args.target)
    key = "cli.check.blocked" if blocked else "cli.check.allowed"
    print(get_message(key, config.language, target=args.target))
    _finish(engine)
    return 2 if blocked else 0


def cmd_strict(args: argparse.Namespace) -> int:
    """
    Handle the 'strict' command.

    'strict enable' starts a focus session with a planned length and
    enables strict mode for it. The session end is signed next to the
    state file; 'strict session-ended' is refused until that time.
    """
    config = load_effective_config(args)
    lang = config.language
    store = session_store(config)
    session_context = TimedSessionContext(
        clock=local_now,
        sessions=store.load() if store is not None else None,
    )

    if args.strict_action == "enable":
        if args.minutes < 1:
            raise ValidationError("minutes", "Session length must be at least one minute")
        engine = build_engine(config, session_context)
        session_context.start_session(
            args.session_id, local_now() + timedelta(minutes=args.minutes)
        )
        status = engine.enable_strict_mode(args.session_id)
        if store is not None:
            store.save(session_context.sessions)
        print(get_message("cli.strict.enabled", lang, session_id=status.session_id))
    elif args.strict_action == "session-ended":
        engine = build_engine(config, session_context)
        if session_context.is_session_active(args.session_id):
            raise PreconditionFailedError(
                "Focus session is still running",
                {
                    "session_id": args.session_id,
                    "ends_at": session_context.ends_at(args.session_id).isoformat(),
                },
            )
        engine.notify_session_ended(args.session_id)
        print(get_message("cli.strict.session_ended", lang, session_id=args.session_id))
    elif args.strict_action == "disable":
        engine = build_engine(config, session_context)
        engine.disable_strict_mode()
        print(get_message("cli.strict.disabled", lang))
    else:
        engine = build_engine(config, session_context)
        status = engine.get_strict_mode_status()
        if status.enabled:
            print(get_message(
                "cli.strict.status_on",
                lang,
                session_id=status.session_id,
                can_disable=_yes_no(status.can_disable, lang),
            ))
        else:
            print(get_message("cli.strict.status_off", lang))

    _finish(engine)
    return 0


def cmd_nuclear(args: argparse.Namespace) -> int:
    """Handle the 'nuclear' command."""
    config = load_effective_config(args)
    lang = config.language
    engine = build_engine(config)

    if args.nuclear_action == "activate":
        status = engine.activate_nuclear_option(args.minutes)
        print(get_message("cli.nuclear.activated", lang, ends_at=status.ends_at.isoformat()))
    else:
        status = engine.get_nuclear_option_status()
        if status.active:
            print(get_message(
                "cli.nuclear.status_on",
                lang,
                remaining_seconds=status.remaining_seconds,
                ends_at=status.ends_at.isoformat(),
            ))
        else:
            print(get_message("cli.nuclear.status_off", lang))

    _finish(engine)
    return 0


def cmd_permissions(args: argparse.Namespace) -> int:
    """Handle the 'permissions' command."""
    config = load_effective_config(args)
    lang = config.language
    engine = build_engine(config)

    if args.permissions_action == "instructions":
        instructions = engine.get_permission_instructions(args.platform or "")
        print(get_message("cli.permissions.primary", lang, name=instructions.primary_method.name))
        for number, step in enumerate(instructions.primary_method.steps, 1):
            print(f"  {number}. {step}")
        for method in instructions.alternative_methods:
            print(get_message("cli.permissions.alternative", lang, name=method.name))
            for number, step in enumerate(method.steps, 1):
                print(f"  {number}. {step}")
        for note in instructions.security_notes:
            print(f"  * {note}")
        return 0

    status = asyncio.run(engine.check_permissions())
    print(get_message(
        "cli.permissions.header",
        lang,
        platform=status.platform,
        status=get_message(f"status.{status.overall_status.value}", lang),
    ))
    print("  " + get_message(
        "cli.permissions.hosts",
        lang,
        path=status.hosts_file_path,
        value=_yes_no(status.hosts_file_writable, lang),
    ))
    print("  " + get_message(
        "cli.permissions.monitoring", lang, value=_yes_no(status.process_monitoring_available, lang)
    ))
    print("  " + get_message(
        "cli.permissions.termination", lang, value=_yes_no(status.process_termination_available, lang)
    ))
    if status.recommendations:
        print(get_message("cli.permissions.recommendations", lang))
        for recommendation in status.recommendations:
            print(f"  - {recommendation}")
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    """Handle the 'stats' command."""
    config = load_effective_config(args)
    lang = config.language
    engine = build_engine(config)

    if args.rule_id:
        stats = engine.get_rule_stats(RuleId(args.rule_id))
        print(get_message(
            "cli.stats.rule",
            lang,
            rule_id=stats.rule_id.value,
            total=stats.total_blocks,
            bypasses=stats.bypasses,
            avg=stats.avg_blocks_per_day,
        ))
        return 0

    statistics = engine.get_block_statistics()
    print(get_message(
        "cli.stats.summary",
        lang,
        total=statistics.total_attempts,
        today=statistics.attempts_today,
        week=statistics.attempts_this_week,
        month=statistics.attempts_this_month,
    ))
    for item in statistics.top_blocked_targets:
        print(get_message(
            "cli.stats.top_target", lang, target=item.target, rule_type=item.rule_type, count=item.count
        ))
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else DEFAULT_CONFIG_PATH
    lang = args.language or "de"

    if args.action == "show":
        config = load_config_from_file(config_path)
        if config is None:
            print(get_message("cli.config.not_found", lang, path=config_path))
            print("Use 'config init' to create a default configuration.")
            return 1

        print(f"Configuration from: {config_path}")
        print(f"  Language: {config.language}")
        if config.persistence is not None:
            print(f"  State file: {config.persistence.state_file_path}")
        print(f"  Log level: {config.logging.level}")
        print(f"  Audit mode: {config.logging.audit_mode}")
        print(f"  Hosts file: {config.probes.hosts_file_path or default_hosts_path()}")
        print(f"  Nuclear durations: {config.nuclear.allowed_durations or 'any'}")
        print(f"  Webhook: {'configured' if config.notifications.webhook else 'none'}")
        print(f"  Categories: {', '.join(list_categories())}")
        return 0

    if args.action == "init":
        if config_path.exists() and not args.force:
            print(get_message("cli.config.exists", lang, path=config_path))
            print("Use --force to overwrite.")
            return 1

        config = create_default_config(language=lang)
        if save_config_to_file(config, config_path):
            print(get_message("cli.config.created", lang, path=config_path))
            return 0
        return 1

    if args.action == "validate":
        config = load_config_from_file(config_path)
        if config is None:
            print(get_message("cli.config.not_found", lang, path=config_path), file=sys.stderr)
            return 1

        result = validate_config(config)
        for warning in result.warnings:
            print(f"  ! {warning}")
        for error in result.errors:
            print(f"  x {error}", file=sys.stderr)
        key = "cli.config.valid" if result.valid else "cli.config.invalid"
        print(get_message(key, lang))
        return 0 if result.valid else 1

    return 1


def cmd_run(args: argparse.Namespace) -> int:
    """Handle the 'run' command: drive the engine clock until interrupted."""
    config = load_effective_config(args)
    engine = build_engine(config)
    print(get_message("cli.run.started", config.language))

    try:
        asyncio.run(engine.run_clock(asyncio.Event()))
    except KeyboardInterrupt:
        pass

    print(get_message("cli.run.stopped", config.language))
    return 0


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    parser.add_argument(
        "--language", "-l",
        choices=["de", "en"],
        help="Output language (default: from configuration)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="focus-blocker",
        description="Website and app blocking policy engine with strict and nuclear locks",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'rules' command
    rules_parser = subparsers.add_parser("rules", help="Manage block rules")
    rules_sub = rules_parser.add_subparsers(dest="rules_action", required=True)

    list_parser = rules_sub.add_parser("list", help="List rules")
    list_parser.add_argument("--type", choices=[t.value for t in RuleType])
    list_parser.add_argument("--enabled", choices=["yes", "no"])
    _add_common_arguments(list_parser)

    add_parser = rules_sub.add_parser("add", help="Add a rule")
    add_parser.add_argument(
        "type",
        choices=[t.value for t in RuleType],
        help="Rule type",
    )
    add_parser.add_argument(
        "target",
        help="Domain, app name or category id (e.g., social_media)",
    )
    add_parser.add_argument(
        "--schedule",
        choices=[s.value for s in ScheduleType],
        default=ScheduleType.ALWAYS.value,
        help="When the rule is in force (default: always)",
    )
    add_parser.add_argument(
        "--cron",
        help="Five-field cron expression for scheduled rules (e.g., '0 9 * * 1-5')",
    )
    add_parser.add_argument(
        "--strictness",
        choices=[s.value for s in Strictness],
        default=Strictness.MEDIUM.value,
    )
    add_parser.add_argument(
        "--disabled",
        action="store_true",
        help="Create the rule disabled",
    )
    _add_common_arguments(add_parser)

    for action in ("remove", "enable", "disable"):
        action_parser = rules_sub.add_parser(action, help=f"{action.capitalize()} a rule")
        action_parser.add_argument("rule_id", help="Rule id")
        _add_common_arguments(action_parser)

    strictness_parser = rules_sub.add_parser("strictness", help="Change a rule's strictness")
    strictness_parser.add_argument("rule_id", help="Rule id")
    strictness_parser.add_argument("level", choices=[s.value for s in Strictness])
    _add_common_arguments(strictness_parser)

    rules_parser.set_defaults(func=cmd_rules)

    # 'check' command
    check_parser = subparsers.add_parser(
        "check",
        help="Check whether a website or app is blocked right now",
    )
    check_parser.add_argument(
        "target",
        help="Domain or app name (e.g., www.youtube.com, Slack)",
    )
    check_parser.add_argument(
        "--session",
        help="Treat this focus session as running",
    )
    _add_common_arguments(check_parser)
    check_parser.set_defaults(func=cmd_check)

    # 'strict' command
    strict_parser = subparsers.add_parser("strict", help="Strict mode for a focus session")
    strict_sub = strict_parser.add_subparsers(dest="strict_action", required=True)
    enable_parser = strict_sub.add_parser(
        "enable",
        help="Start a focus session and lock weakening changes until it ends",
    )
    enable_parser.add_argument("session_id", help="Focus session id")
    enable_parser.add_argument(
        "--minutes", "-m",
        type=int,
        required=True,
        help="Planned session length in minutes",
    )
    _add_common_arguments(enable_parser)
    ended_parser = strict_sub.add_parser(
        "session-ended",
        help="Allow disabling once the session's planned length has passed",
    )
    ended_parser.add_argument("session_id", help="Focus session id")
    _add_common_arguments(ended_parser)
    _add_common_arguments(strict_sub.add_parser("disable"))
    _add_common_arguments(strict_sub.add_parser("status"))
    strict_parser.set_defaults(func=cmd_strict)

    # 'nuclear' command
    nuclear_parser = subparsers.add_parser(
        "nuclear",
        help="Lock all blocking for a fixed time, with no way to undo it",
    )
    nuclear_sub = nuclear_parser.add_subparsers(dest="nuclear_action", required=True)
    activate_parser = nuclear_sub.add_parser("activate")
    activate_parser.add_argument("minutes", type=int, help="Duration in minutes")
    _add_common_arguments(activate_parser)
    _add_common_arguments(nuclear_sub.add_parser("status"))
    nuclear_parser.set_defaults(func=cmd_nuclear)

    # 'permissions' command
    permissions_parser = subparsers.add_parser(
        "permissions",
        help="Check enforcement capabilities of this machine",
    )
    permissions_sub = permissions_parser.add_subparsers(dest="permissions_action", required=True)
    _add_common_arguments(permissions_sub.add_parser("check"))
    instructions_parser = permissions_sub.add_parser("instructions")
    instructions_parser.add_argument(
        "--platform",
        choices=["macos", "darwin", "windows", "linux"],
        help="Target platform (default: this machine)",
    )
    _add_common_arguments(instructions_parser)
    permissions_parser.set_defaults(func=cmd_permissions)

    # 'stats' command
    stats_parser = subparsers.add_parser("stats", help="Show block statistics")
    stats_parser.add_argument("rule_id", nargs="?", help="Show statistics for one rule")
    _add_common_arguments(stats_parser)
    stats_parser.set_defaults(func=cmd_stats)

    # 'config' command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path", "-p",
        help="Path to configuration file",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.add_argument(
        "--language", "-l",
        choices=["de", "en"],
        default="de",
        help="Default language for new configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    # 'run' command
    run_parser = subparsers.add_parser("run", help="Run the engine clock until interrupted")
    _add_common_arguments(run_parser)
    run_parser.set_defaults(func=cmd_run)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    language = getattr(args, "language", None) or os.getenv(ENV_LANGUAGE) or "de"
    try:
        return args.func(args)
    except TamperingError as e:
        print(
            get_message("cli.error.tampered", language, path=e.details.get("file_path", "")),
            file=sys.stderr,
        )
        return 1
    except BlockingError as e:
        print(get_message("cli.error", language, message=e.message), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

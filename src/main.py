#!/usr/bin/env python3
"""
Email Triage Rules - Main entry point
"""
import argparse
import logging
import os
import sys

# Add the parent directory to Python path for imports
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import structlog
from dotenv import load_dotenv

from src.config import Settings
from src.database import SqlDebugLogSink, SqlRuleRepository, SqlTriageStore, get_db_session, get_engine, init_db
from src.gmail import GmailActionHost, GmailClient, get_gmail_service, get_user_email
from src.rules import InMemoryRuleRepository, RecordingActionHost, RulesEngine, ScriptRunner
from src.rules.catalog import list_action_types, list_condition_types
from src.rules.context import parse_sender
from src.rules.errors import RulesError
from src.rules.examples import example_rules
from src.rules.portability import export_rules, import_rules
from src.rules.validation import validate_rule

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = structlog.get_logger()

# Disable debug logging for specific modules
logging.getLogger('googleapiclient.discovery').setLevel(logging.WARNING)
logging.getLogger('googleapiclient.discovery_cache').setLevel(logging.ERROR)


def parse_args(argv=None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(description='Email Triage Rules')
    commands = parser.add_subparsers(dest='command', required=True)

    process = commands.add_parser('process', help='Run enabled rules against unread mail')
    process.add_argument('--max-emails', type=int, help='Maximum number of emails to process')
    process.add_argument('--days', type=int, help='Process emails from last N days')
    process.add_argument('--dry-run', action='store_true', help='Record actions instead of performing them')

    import_cmd = commands.add_parser('import', help='Replace stored rules with a JSON backup')
    import_cmd.add_argument('file', nargs='?', help='Backup file (defaults to RULES_FILE)')

    export = commands.add_parser('export', help='Write stored rules as JSON')
    export.add_argument('file', nargs='?', help='Output file (defaults to stdout)')

    commands.add_parser('list', help='List stored rules')
    commands.add_parser('catalog', help='List condition and action types')
    commands.add_parser('stats', help='Show rule statistics')

    logs = commands.add_parser('logs', help='Show or clear debug logs')
    logs.add_argument('--limit', type=int, default=20)
    logs.add_argument('--clear', action='store_true')

    commands.add_parser('seed-examples', help='Store the example rules (disabled)')

    toggle = commands.add_parser('toggle', help='Enable or disable a rule')
    toggle.add_argument('rule_id')

    delete = commands.add_parser('delete', help='Delete a rule')
    delete.add_argument('rule_id')

    config = commands.add_parser('config', help='Show or change debug settings')
    config.add_argument('--debug', choices=['on', 'off'])
    config.add_argument('--retention-days', type=int)

    return parser.parse_args(argv)


def process_emails(args, settings: Settings, db) -> None:
    """Fetch unread mail and run one rules pass per message"""
    repository = SqlRuleRepository(db)
    store = SqlTriageStore(db)
    rules_config = repository.get_config()

    # Set up Gmail client
    service = get_gmail_service(settings.gmail_token_file)
    user_email = get_user_email(service)
    if not user_email:
        logger.error("Failed to get user email")
        return

    logger.info("Authenticated with Gmail", user=user_email)
    gmail_client = GmailClient(service)

    if args.dry_run:
        host = RecordingActionHost()
        engine_repository = InMemoryRuleRepository(repository.list_rules(), rules_config)
        debug_sink = None
    else:
        host = GmailActionHost(gmail_client, store, settings)
        engine_repository = repository
        debug_sink = SqlDebugLogSink(db, retention_days=rules_config.debug_retention_days)

    rules_engine = RulesEngine(
        engine_repository,
        host,
        debug_sink=debug_sink,
        script_runner=ScriptRunner(settings.script_timeout_ms, settings.script_max_memory),
    )

    query = 'is:unread'
    if args.days:
        query += f" newer_than:{args.days}d"
    logger.info("Fetching messages from Gmail...", max_emails=args.max_emails, days=args.days)
    messages = gmail_client.list_all_messages(query=query, max_total=args.max_emails)
    logger.info(f"Found {len(messages)} messages to process")

    processed = 0
    for msg in messages:
        msg_id = msg['id']
        if store.is_processed(msg_id):
            logger.debug("Skipping processed email", gmail_id=msg_id)
            continue

        # Metadata first; the body is only fetched when a rule needs it
        message = gmail_client.get_message(msg_id, message_format='metadata')
        if not message:
            logger.warning(f"Could not fetch message {msg_id}, skipping...")
            continue

        email = gmail_client.message_to_email(message, content_loaded=False)
        sender_score = store.get_sender_score(parse_sender(email.from_address).email)
        outcome = rules_engine.process_email(email, sender_score=sender_score)

        if outcome.result.deferred:
            full = gmail_client.get_message(msg_id)
            if not full:
                rules_engine.clear_pending(msg_id)
                logger.warning(f"Could not load content of message {msg_id}, skipping...")
                continue
            loaded = gmail_client.message_to_email(full)
            outcome = rules_engine.process_loaded_content(msg_id, loaded.body or '', loaded.html_body)

        result = outcome.result
        logger.info(
            "Processed email",
            subject=email.subject,
            rules_checked=result.total_rules_checked,
            rules_fired=result.total_rules_fired,
        )
        if result.navigation is not None:
            logger.info("Rule requested navigation", gmail_id=msg_id, direction=result.navigation.value)

        if not args.dry_run:
            store.mark_processed(msg_id, result.total_rules_fired)
        processed += 1

    logger.info("Email processing completed", processed=processed)


def import_file(path: str, db) -> None:
    with open(path, 'r') as f:
        rules, rules_config = import_rules(f.read())

    for rule in rules:
        for problem in validate_rule(rule):
            logger.warning("Rule problem", rule=rule.name, problem=problem)

    repository = SqlRuleRepository(db)
    count = repository.replace_rules(rules)
    if rules_config is not None:
        repository.set_config(rules_config)
    logger.info("Rules imported", count=count, source=path)


def export_file(path, db) -> None:
    repository = SqlRuleRepository(db)
    text = export_rules(repository.list_rules(), repository.get_config())
    if path:
        with open(path, 'w') as f:
            f.write(text)
        logger.info("Rules exported", destination=path)
    else:
        print(text)


def list_rules(db) -> None:
    for rule in SqlRuleRepository(db).list_rules():
        state = 'on ' if rule.enabled else 'off'
        print(f"[{state}] {rule.id}  {rule.name}  "
              f"({len(rule.conditions)} conditions {rule.logic_operator.value}, "
              f"{len(rule.actions)} actions, fired {rule.execution_count}x)")


def show_catalog() -> None:
    print('Conditions:')
    for condition_type in list_condition_types():
        operators = ', '.join(op.value for op in condition_type.supported_operators)
        print(f"  {condition_type.type.value:<20} {condition_type.label} [{operators}]")
    print('Actions:')
    for action_type in list_action_types():
        params = ', '.join(param.name for param in action_type.parameters)
        print(f"  {action_type.type.value:<20} {action_type.label}" + (f" ({params})" if params else ''))


def show_logs(args, db) -> None:
    rules_config = SqlRuleRepository(db).get_config()
    sink = SqlDebugLogSink(db, retention_days=rules_config.debug_retention_days)
    if args.clear:
        removed = sink.clear()
        logger.info("Debug logs cleared", removed=removed)
        return
    for entry in sink.list_entries(limit=args.limit):
        print(f"{entry.timestamp}  {entry.email_subject!r} from {entry.email_from}: "
              f"{entry.total_rules_fired}/{entry.total_rules_checked} rules fired")
        for result in entry.results:
            if result.matched:
                failed = [a for a in result.action_results if not a.success]
                print(f"    {result.rule_name}: {len(result.action_results)} actions, {len(failed)} failed")


def update_config(args, db) -> None:
    repository = SqlRuleRepository(db)
    rules_config = repository.get_config()
    updates = {}
    if args.debug is not None:
        updates['debug_mode'] = args.debug == 'on'
    if args.retention_days is not None:
        updates['debug_retention_days'] = args.retention_days
    if updates:
        rules_config = rules_config.model_validate({**rules_config.model_dump(), **updates})
        repository.set_config(rules_config)
    print(rules_config.model_dump_json(by_alias=True, indent=2))


def main(argv=None):
    """Main entry point for the Email Triage Rules command line"""
    args = parse_args(argv)

    # Load environment variables
    load_dotenv()
    settings = Settings.from_env()

    engine = get_engine(settings.database_url)
    init_db(engine)
    db = get_db_session(engine)
    try:
        if args.command == 'process':
            logger.info("Starting Email Triage Rules...")
            process_emails(args, settings, db)
        elif args.command == 'import':
            import_file(args.file or settings.rules_file, db)
        elif args.command == 'export':
            export_file(args.file, db)
        elif args.command == 'list':
            list_rules(db)
        elif args.command == 'catalog':
            show_catalog()
        elif args.command == 'stats':
            print(SqlRuleRepository(db).statistics().model_dump_json(by_alias=True, indent=2))
        elif args.command == 'logs':
            show_logs(args, db)
        elif args.command == 'seed-examples':
            repository = SqlRuleRepository(db)
            for rule in example_rules():
                repository.create_rule(rule)
            logger.info("Example rules added (disabled)")
        elif args.command == 'toggle':
            rule = SqlRuleRepository(db).toggle_rule(args.rule_id)
            logger.info("Rule toggled", rule=rule.name, enabled=rule.enabled)
        elif args.command == 'delete':
            if not SqlRuleRepository(db).delete_rule(args.rule_id):
                return 1
        elif args.command == 'config':
            update_config(args, db)
    except RulesError as e:
        logger.error("Rules error", error=str(e))
        return 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())

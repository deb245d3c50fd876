"""Change emitter — the NOTIFY trigger on the inventory table.

Learn: PostgreSQL LISTEN/NOTIFY pushes changes out of the database itself.
After every row-level INSERT, UPDATE or DELETE on `sales`, the trigger calls
pg_notify on the relay channel with a small JSON payload:

    DELETE:         {"operation", "table", "id", "timestamp"}
    INSERT/UPDATE:  the above plus "itemName", "vendorName"

NOTIFY payloads are capped at 8000 bytes, so the trigger sends identifiers
and a couple of display fields, never the whole row.

Run via the CLI:
    slabrelay install-triggers
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection

from slabrelay.realtime.bridge import CHANNEL

TABLE = "sales"
TRIGGER_NAME = "inventory_notify_trigger"
FUNCTION_NAME = "notify_inventory_change"

CREATE_FUNCTION = f"""
CREATE OR REPLACE FUNCTION {FUNCTION_NAME}()
RETURNS TRIGGER AS $$
DECLARE
    payload JSON;
BEGIN
    IF (TG_OP = 'DELETE') THEN
        payload = json_build_object(
            'operation', TG_OP,
            'table', TG_TABLE_NAME,
            'id', OLD.id,
            'timestamp', CURRENT_TIMESTAMP
        );
    ELSE
        payload = json_build_object(
            'operation', TG_OP,
            'table', TG_TABLE_NAME,
            'id', NEW.id,
            'itemName', NEW.item_name,
            'vendorName', NEW.vendor_name,
            'timestamp', CURRENT_TIMESTAMP
        );
    END IF;

    PERFORM pg_notify('{CHANNEL}', payload::text);

    RETURN COALESCE(NEW, OLD);
END;
$$ LANGUAGE plpgsql;
"""

DROP_TRIGGER = f"DROP TRIGGER IF EXISTS {TRIGGER_NAME} ON {TABLE};"

CREATE_TRIGGER = f"""
CREATE TRIGGER {TRIGGER_NAME}
    AFTER INSERT OR UPDATE OR DELETE ON {TABLE}
    FOR EACH ROW
    EXECUTE FUNCTION {FUNCTION_NAME}();
"""

DROP_FUNCTION = f"DROP FUNCTION IF EXISTS {FUNCTION_NAME};"

TRIGGER_EXISTS = """
SELECT count(*) FROM information_schema.triggers
WHERE trigger_name = :name
"""


async def install_triggers(conn: AsyncConnection) -> None:
    """Create (or replace) the notify function and trigger. Idempotent."""
    await conn.execute(text(CREATE_FUNCTION))
    await conn.execute(text(DROP_TRIGGER))
    await conn.execute(text(CREATE_TRIGGER))


async def drop_triggers(conn: AsyncConnection) -> None:
    await conn.execute(text(DROP_TRIGGER))
    await conn.execute(text(DROP_FUNCTION))


async def triggers_installed(conn: AsyncConnection) -> bool:
    result = await conn.execute(text(TRIGGER_EXISTS), {"name": TRIGGER_NAME})
    return (result.scalar() or 0) > 0

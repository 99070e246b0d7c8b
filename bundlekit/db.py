from sqlalchemy import create_engine, text

CAP = 100_000


def make_engine(db_url: str):
    return create_engine(db_url, pool_pre_ping=True, future=True)


def create_schema(engine):
    with engine.begin() as con:
        con.execute(text("""
            CREATE TABLE IF NOT EXISTS run_logs (
                run_key VARCHAR(255) NOT NULL,
                stream  VARCHAR(16)  NOT NULL,
                data    TEXT         NOT NULL DEFAULT '',
                ts      TIMESTAMP    DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (run_key, stream)
            )
        """))


def write_log_snapshot(engine, run_key: str, stream: str, chunk: str):
    """
    Append `chunk` to the single (run_key, stream) row.
    If no row exists, insert one. Cap stored data to last 100k chars.
    Works on Postgres and SQLite.
    """
    data = (chunk or "")[-CAP:]

    if engine.dialect.name == "postgresql":
        update_sql = text("""
            UPDATE run_logs
               SET data = RIGHT(run_logs.data || :data, :cap),
                   ts   = now()
             WHERE run_key = :rk AND stream = :st
        """)
    else:
        update_sql = text("""
            UPDATE run_logs
               SET data = substr(run_logs.data || :data, -:cap),
                   ts   = CURRENT_TIMESTAMP
             WHERE run_key = :rk AND stream = :st
        """)
    insert_sql = text("""
        INSERT INTO run_logs (run_key, stream, data)
        VALUES (:rk, :st, :data)
    """)
    params = {"rk": run_key, "st": stream, "data": data, "cap": CAP}

    with engine.begin() as con:
        res = con.execute(update_sql, params)
        if res.rowcount == 0:
            con.execute(insert_sql, params)


def read_log(engine, run_key: str, stream: str):
    with engine.connect() as con:
        row = con.execute(
            text("SELECT data FROM run_logs WHERE run_key = :rk AND stream = :st"),
            {"rk": run_key, "st": stream},
        ).first()
    return row[0] if row else None


def record_output(engine, run_key: str, output):
    """Persist both streams of a CapturedOutput, skipping empty ones."""
    if output.stdout:
        write_log_snapshot(engine, run_key, "stdout", output.stdout_text())
    if output.stderr:
        write_log_snapshot(engine, run_key, "stderr", output.stderr_text())

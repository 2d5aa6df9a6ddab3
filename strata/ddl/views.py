"""
CREATE VIEW generation — from ViewDefinitions or annotated .sql files.

A view file holds a bare SELECT, optionally headed by annotations:

    -- @name: active_users
    -- @columns: id, email
    -- @temporary: true
    SELECT id, email FROM users WHERE deleted_at IS NULL

Files without @name take the file stem.
"""

from pathlib import Path

from strata.model import ResolvedModel, ViewDefinition


def create_view_sql(view: ViewDefinition) -> str:
    temp = 'TEMPORARY ' if view.temporary else ''
    exists = 'IF NOT EXISTS ' if view.if_not_exists else ''
    sql = f"CREATE {temp}VIEW {exists}{view.name}"
    if view.columns:
        sql += f" ({', '.join(view.columns)})"
    return f"{sql} AS {view.select.strip().rstrip(';')}"


def generate_view_sql(model: ResolvedModel) -> list[str]:
    return [create_view_sql(v) for v in model.definition.views if v.name and v.select]


def parse_view_file(path: Path) -> ViewDefinition:
    """Parse a .sql file with @name / @columns / @temporary annotations."""
    content = path.read_text(encoding='utf-8')
    name = None
    columns = None
    temporary = False
    body = []

    in_header = True
    for line in content.splitlines():
        stripped = line.strip()
        if in_header and stripped.startswith('--'):
            text = stripped.lstrip('-').strip()
            if text.startswith('@name:'):
                name = text[len('@name:'):].strip()
            elif text.startswith('@columns:'):
                columns = [c.strip() for c in text[len('@columns:'):].split(',') if c.strip()]
            elif text.startswith('@temporary:'):
                temporary = text[len('@temporary:'):].strip().lower() in ('true', '1', 'yes')
            continue
        if in_header and not stripped:
            continue
        in_header = False
        body.append(line)

    if not name:
        # Fallback: derive from filename
        name = path.stem

    return ViewDefinition(name=name, select='\n'.join(body).strip(),
                          columns=columns, temporary=temporary, if_not_exists=True)


def load_views(view_dir: Path) -> list[ViewDefinition]:
    """All *.sql view files in a directory, sorted by filename."""
    return [parse_view_file(p) for p in sorted(Path(view_dir).glob('*.sql'))]

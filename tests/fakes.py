"""
In-memory doubles for the Supabase client.
"""

from types import SimpleNamespace


class FakeQuery:
    """
    Stand-in for a Supabase query builder.
    Every builder method is recorded and returns the same query.
    """

    def __init__(self, table: str, rows: list, error: Exception | None = None):
        self.table = table
        self.rows = rows
        self.error = error
        self.calls = []

    def __getattr__(self, name):
        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return method

    def called(self, name: str) -> list:
        """Arguments of every call to a builder method."""
        return [args for method, args, _ in self.calls if method == name]

    def execute(self):
        if self.error is not None:
            raise self.error
        return SimpleNamespace(data=self.rows)


class FakeSupabase:
    """
    Stand-in for a Supabase client.

    ``responses`` maps table name to a list of row lists served in order;
    the last one keeps being served once the others are used.
    """

    def __init__(self, responses: dict | None = None, error: Exception | None = None):
        self.responses = {table: list(rows) for table, rows in (responses or {}).items()}
        self.error = error
        self.queries: list[FakeQuery] = []

    def table(self, name: str) -> FakeQuery:
        queue = self.responses.get(name, [])
        if len(queue) > 1:
            rows = queue.pop(0)
        else:
            rows = queue[0] if queue else []
        query = FakeQuery(name, rows, self.error)
        self.queries.append(query)
        return query

    def queries_for(self, table: str) -> list[FakeQuery]:
        return [q for q in self.queries if q.table == table]


def appointment_row(
    numero: str = "1234",
    fecha: str = "2025-05-15",
    hora: str = "10:30:00",
    paciente: str = "María López",
    doctor: str = "Ana Peláez",
    especialidad: str = "Ginecología",
    motivo: str = "Ultrasonido de control",
    estado: str = "pendiente",
    **extra,
) -> dict:
    """Row of citas as returned with its pacientes/doctores embeds."""
    return {
        "id": int(numero),
        "numero_cita": numero,
        "fecha": fecha,
        "hora": hora,
        "motivo": motivo,
        "estado": estado,
        "paciente_id": 10,
        "doctor_id": 2,
        "pacientes": {"nombre": paciente},
        "doctores": {"nombre": doctor, "especialidad": especialidad},
        **extra,
    }

import logging
from typing import Callable, Dict, List, Optional, Sequence

from openpyxl import load_workbook

from studio.editor.media import MediaFile, is_image, read_as_data_url
from studio.editor.notify import Notifier
from studio.models.template_model import DataIteration, Placeholder, Value
from studio.utils.errors import MediaValidationError

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MS = 2000
MIN_DURATION_MS = 500
MS_PER_SECOND = 1000


def _noop(iterations):
    return None


class DataManager:
    """
    Per-iteration value sets. Every change produces a new list
    (and new DataIteration objects for the touched entries), which is
    handed to `on_change`.
    """

    def __init__(
        self,
        placeholders: Sequence[Placeholder],
        iterations: Optional[List[DataIteration]] = None,
        on_change: Callable[[List[DataIteration]], None] = _noop,
        notifier: Optional[Notifier] = None,
    ):
        self.placeholders = placeholders
        self.iterations: List[DataIteration] = list(iterations or [])
        self.on_change = on_change
        self.notifier = notifier or Notifier()

    def _commit(self, iterations: List[DataIteration]) -> None:
        self.iterations = iterations
        self.on_change(iterations)

    def get(self, iteration_id: str) -> Optional[DataIteration]:
        return next((i for i in self.iterations if i.id == iteration_id), None)

    def _placeholder(self, placeholder_id: str) -> Optional[Placeholder]:
        return next((p for p in self.placeholders if p.id == placeholder_id), None)

    # -------------------------------------------------
    # Iterations
    # -------------------------------------------------

    def add_iteration(self) -> DataIteration:
        iteration = DataIteration(
            values={p.id: "" for p in self.placeholders},
            duration=DEFAULT_DURATION_MS,
        )
        self._commit([*self.iterations, iteration])
        return iteration

    def update_iteration_value(self, iteration_id: str, placeholder_id: str, value: Value) -> None:
        # values only ever hold keys of live placeholders
        if self._placeholder(placeholder_id) is None:
            logger.warning(f"Ignoring value for unknown placeholder {placeholder_id}")
            return

        self._commit([
            it.model_copy(update={"values": {**it.values, placeholder_id: value}})
            if it.id == iteration_id else it
            for it in self.iterations
        ])

    def update_iteration(self, iteration_id: str, **fields) -> None:
        if "duration" in fields:
            fields["duration"] = validate_duration(fields["duration"])
        fields.pop("id", None)

        self._commit([
            it.model_copy(update=fields) if it.id == iteration_id else it
            for it in self.iterations
        ])

    def delete_iteration(self, iteration_id: str) -> None:
        self._commit([it for it in self.iterations if it.id != iteration_id])

    def remove_placeholder(self, placeholder_id: str) -> None:
        """Drop a deleted placeholder's key from every iteration."""
        self._commit([
            it.model_copy(update={
                "values": {k: v for k, v in it.values.items() if k != placeholder_id}
            })
            for it in self.iterations
        ])

    # -------------------------------------------------
    # Duration (seconds in the UI, milliseconds inside)
    # -------------------------------------------------

    def duration_seconds(self, iteration_id: str) -> Optional[float]:
        it = self.get(iteration_id)
        return None if it is None else it.duration / MS_PER_SECOND

    def set_duration_seconds(self, iteration_id: str, seconds: float) -> None:
        self.update_iteration(iteration_id, duration=float(seconds) * MS_PER_SECOND)

    # -------------------------------------------------
    # Image values
    # -------------------------------------------------

    def upload_image(self, iteration_id: str, placeholder_id: str, file: MediaFile) -> bool:
        placeholder = self._placeholder(placeholder_id)
        if placeholder is None or placeholder.type != "image":
            self.notifier.error("Images can only be uploaded to image placeholders")
            return False

        if not is_image(file):
            self.notifier.error("Please upload an image file")
            return False

        try:
            data_url = read_as_data_url(file)
        except MediaValidationError as e:
            self.notifier.error(str(e))
            return False

        self.update_iteration_value(iteration_id, placeholder_id, data_url)
        self.notifier.success("Image uploaded")
        return True

    # -------------------------------------------------
    # Spreadsheet import
    # -------------------------------------------------

    def import_rows(self, path: str) -> Dict:
        """
        Appends one iteration per sheet row. Header cells name placeholders
        (by name or id); an optional `duration` column holds seconds.
        """
        wb = load_workbook(path, read_only=True, data_only=True)
        try:
            ws = wb.active
            rows = ws.iter_rows(values_only=True)
            header = next(rows, None)
            if not header:
                return {"total": 0, "imported": 0, "errors": []}

            columns = self._map_columns(header)

            new_iterations = []
            errors = []
            total = 0
            for row_no, row in enumerate(rows, start=2):
                if row is None or all(cell is None for cell in row):
                    continue
                total += 1
                try:
                    new_iterations.append(self._row_to_iteration(columns, row))
                except ValueError as e:
                    errors.append({"row": row_no, "error": str(e)})
        finally:
            wb.close()

        if new_iterations:
            self._commit([*self.iterations, *new_iterations])

        logger.info(f"Imported {len(new_iterations)}/{total} iterations from {path}")
        return {"total": total, "imported": len(new_iterations), "errors": errors}

    def _map_columns(self, header) -> Dict[int, str]:
        by_name = {p.name.strip().lower(): p.id for p in self.placeholders}
        by_id = {p.id: p.id for p in self.placeholders}

        columns = {}
        for idx, cell in enumerate(header):
            if cell is None:
                continue
            key = str(cell).strip()
            if key.lower() == "duration":
                columns[idx] = "duration"
            elif key in by_id:
                columns[idx] = by_id[key]
            elif key.lower() in by_name:
                columns[idx] = by_name[key.lower()]
        return columns

    def _row_to_iteration(self, columns: Dict[int, str], row) -> DataIteration:
        values = {p.id: "" for p in self.placeholders}
        duration = DEFAULT_DURATION_MS

        for idx, target in columns.items():
            cell = row[idx] if idx < len(row) else None
            if target == "duration":
                if cell is not None:
                    try:
                        seconds = float(cell)
                    except (TypeError, ValueError):
                        raise ValueError(f"Invalid duration: {cell}")
                    duration = validate_duration(seconds * MS_PER_SECOND)
            else:
                values[target] = "" if cell is None else cell

        return DataIteration(values=values, duration=duration)

    # -------------------------------------------------

    def empty_hint(self) -> Optional[str]:
        if not self.placeholders:
            return "Add placeholders to the template first"
        if not self.iterations:
            return 'No iterations yet. Click "Add Iteration" to start.'
        return None


def validate_duration(duration_ms) -> float:
    try:
        value = float(duration_ms)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid duration: {duration_ms}")

    if value != value or value < MIN_DURATION_MS:   # NaN or too short
        raise ValueError(f"Duration must be at least {MIN_DURATION_MS / MS_PER_SECOND}s")
    return value

import logging
from collections import OrderedDict
from typing import Dict, List, Tuple

from pydantic import ValidationError as SchemaError

from inventory_app.core.errors import ConditionFailed, InvalidKey, ParseError, ValidationError
from inventory_app.pipelines.base import IngestionPipeline, ProcessingResult
from inventory_app.pipelines.parsers import EXTRA_COLUMNS, Row, optional_text, parse_int, require
from inventory_app.schemas.job_template import TemplateLine
from inventory_app.services.job_template_service import item_id_for, template_id_for, upsert_template
from inventory_app.storage.base import ObjectCreatedEvent

log = logging.getLogger(__name__)


class TemplateFilePipeline(IngestionPipeline):
    """
    Imports job templates. Rows are grouped by template name and each
    template is written in one transaction, lines keyed by item.
    """
    name = "job_template"

    async def process_rows(self, result: ProcessingResult, event: ObjectCreatedEvent, rows: List[Row]) -> None:
        # template_id -> (display name, [(row_number, line)])
        groups: Dict[str, Tuple[str, List[Tuple[int, TemplateLine]]]] = OrderedDict()
        seen = set()

        for row_number, raw in rows:
            try:
                if EXTRA_COLUMNS in raw:
                    raise ParseError("Row has more values than the header has columns")
                name = require(raw, "template")
                line = TemplateLine(
                    sku=require(raw, "sku"),
                    quantity=parse_int(raw, "quantity", minimum=1),
                    description=optional_text(raw, "description"),
                )
                template_id = template_id_for(name)
                item_id = item_id_for(line.sku)
            except (ParseError, ValidationError) as exc:
                result.add_error(row_number, exc.message)
                continue
            except SchemaError as exc:
                result.add_error(row_number, exc.errors()[0]["msg"])
                continue

            if (template_id, item_id) in seen:
                result.add_error(row_number, f"SKU '{line.sku}' repeated for template '{name}'")
                continue
            seen.add((template_id, item_id))
            groups.setdefault(template_id, (name, []))[1].append((row_number, line))

        for template_id, (name, numbered) in groups.items():
            lines = [line for _, line in numbered]
            try:
                await self._retrying(
                    lambda: upsert_template(self.store, name, lines, source_file=event.key),
                    label=f"{event.key} template {template_id}",
                )
            except (ValidationError, InvalidKey, ConditionFailed) as exc:
                for row_number, _ in numbered:
                    result.add_error(row_number, exc.message)
                continue
            result.success_count += len(numbered)
            log.info(f"Template {template_id} written with {len(lines)} lines from {event.key}")

"""Template catalog - the set of templates documents are classified against.

The catalog is read-only while documents are processed. Edits return a
new catalog, which the caller swaps in wholesale.
"""

import copy
import logging
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

import yaml

from ..schemas.template import FieldType, Template, TemplateField

logger = logging.getLogger(__name__)


def _items_table(label: str, description: str, name: Tuple[str, str, str], qty: Tuple[str, str, str]) -> TemplateField:
    return TemplateField(
        key="items",
        label=label,
        type=FieldType.TABLE,
        required=True,
        description=description,
        columns=[
            TemplateField(name[0], name[1], FieldType.STRING, True, name[2]),
            TemplateField(qty[0], qty[1], FieldType.STRING, True, qty[2]),
        ],
    )


DEFAULT_TEMPLATES: List[Template] = [
    Template(
        id="tpl_order_form",
        name="注文書",
        description=(
            "タイトルが「注文書」の帳票。発注元、納期、納品先名、品名／規格、"
            "ケース数、発注No.などが記載されている。"
        ),
        fields=[
            TemplateField("order_no", "発注No.", FieldType.STRING, True, "発注No.、注文番号"),
            TemplateField("order_date", "発注日", FieldType.STRING, True, "発注日、発行日 (yyyyMMdd形式)"),
            TemplateField("buyer_name", "発注元", FieldType.STRING, True, "発注元の会社名"),
            TemplateField("delivery_date", "納期", FieldType.STRING, True, "納期、希望納品日 (yyyyMMdd形式)"),
            TemplateField("delivery_place", "納品先名", FieldType.STRING, True, "納品先の名称"),
            _items_table(
                "注文明細",
                "品名／規格、ケース数などが記載された表",
                ("product_name", "品名／規格", "品名、規格"),
                ("case_quantity", "ケース数", "ケース数、数量"),
            ),
        ],
    ),
    Template(
        id="tpl_general_po",
        name="発注書",
        description=(
            "タイトルが「発注書」の帳票。発注元、希望納品日、納品先、品名及び規格・仕様等、"
            "ケース、発注管理番号などが記載されている。"
        ),
        fields=[
            TemplateField("po_no", "発注管理番号", FieldType.STRING, True, "発注管理番号、発注番号"),
            TemplateField("issue_date", "発注日", FieldType.STRING, True, "発注日 (yyyyMMdd形式)"),
            TemplateField("client_name", "発注元", FieldType.STRING, True, "発注元、得意先"),
            TemplateField("delivery_date", "希望納品日", FieldType.STRING, True, "希望納品日 (yyyyMMdd形式)"),
            TemplateField("delivery_place", "納品先", FieldType.STRING, True, "納品先"),
            _items_table(
                "発注明細",
                "品名及び規格・仕様等、ケースなどが記載された表",
                ("product_name", "品名及び規格・仕様等", "品名"),
                ("quantity", "ケース", "ケース、数量"),
            ),
        ],
    ),
    Template(
        id="tpl_shipping_request",
        name="出荷依頼書",
        description=(
            "タイトルが「出荷依頼書」の帳票。依頼元、納期、納品先、商品名称、"
            "個数／入数の上段（ケース）、受注No.などが記載されている。"
        ),
        fields=[
            TemplateField("request_no", "受注No.", FieldType.STRING, True, "受注No."),
            TemplateField("order_date", "受注日", FieldType.STRING, True, "受注日 (yyyyMMdd形式)"),
            TemplateField("sender_name", "依頼元", FieldType.STRING, True, "依頼元"),
            TemplateField("delivery_date", "納期", FieldType.STRING, True, "納期、納品日 (yyyyMMdd形式)"),
            TemplateField("recipient_name", "納品先", FieldType.STRING, True, "納品先"),
            _items_table(
                "商品明細",
                "商品名称、個数／入数の上段（ケース）などが記載された表",
                ("product_name", "商品名称", "商品名称"),
                ("case_quantity", "個数／入数の上段", "ケース数（入数の上段など）"),
            ),
        ],
    ),
    Template(
        id="tpl_purchase_order",
        name="直送仕入商品発注票",
        description=(
            "タイトルが「直送仕入商品発注票」の帳票。得意先、摘要（希望納品日）、発送先、"
            "品目名称、発注箱数、発注No.などが記載されている。"
        ),
        fields=[
            TemplateField("order_no", "発注No.", FieldType.STRING, True, "発注No."),
            TemplateField("issue_date", "発注日", FieldType.STRING, True, "発行日、発注日 (yyyyMMdd形式)"),
            TemplateField("supplier_name", "得意先", FieldType.STRING, True, "得意先"),
            TemplateField("delivery_date", "摘要", FieldType.STRING, True, "摘要欄にある日付（希望納品日） (yyyyMMdd形式)"),
            TemplateField("delivery_name", "発送先", FieldType.STRING, True, "発送先名"),
            _items_table(
                "発注明細",
                "品目名称、発注箱数などが記載された表",
                ("item_name", "品目名称", "品目名称"),
                ("box_count", "発注箱数", "発注箱数（ケース）"),
            ),
        ],
    ),
]


class TemplateCatalog:
    """Ordered, read-only collection of templates."""

    def __init__(self, templates: Sequence[Template] = ()) -> None:
        ids = [t.id for t in templates]
        duplicates = {i for i in ids if ids.count(i) > 1}
        if duplicates:
            raise ValueError(f"Duplicate template ids: {sorted(duplicates)}")
        self._templates: Tuple[Template, ...] = tuple(templates)

    @classmethod
    def default(cls) -> "TemplateCatalog":
        """Catalog of the built-in templates, as copies private to this catalog."""
        return cls(copy.deepcopy(DEFAULT_TEMPLATES))

    @property
    def templates(self) -> Tuple[Template, ...]:
        return self._templates

    def __iter__(self) -> Iterator[Template]:
        return iter(self._templates)

    def __len__(self) -> int:
        return len(self._templates)

    def __contains__(self, template_id: object) -> bool:
        return self.get(template_id) is not None  # type: ignore[arg-type]

    def get(self, template_id: Optional[str]) -> Optional[Template]:
        if template_id is None:
            return None
        for t in self._templates:
            if t.id == template_id:
                return t
        return None

    def with_template(self, template: Template) -> "TemplateCatalog":
        """Return a catalog with template inserted, or replaced if its id exists."""
        templates = list(self._templates)
        for idx, existing in enumerate(templates):
            if existing.id == template.id:
                templates[idx] = template
                logger.info(f"Template '{template.id}' updated")
                return TemplateCatalog(templates)
        templates.append(template)
        logger.info(f"Template '{template.id}' added")
        return TemplateCatalog(templates)

    def without_template(self, template_id: str) -> "TemplateCatalog":
        """Return a catalog without template_id.

        Documents still pointing at it become unresolved references.
        """
        templates = [t for t in self._templates if t.id != template_id]
        if len(templates) == len(self._templates):
            logger.warning(f"Template '{template_id}' not in catalog, nothing deleted")
        else:
            logger.info(f"Template '{template_id}' deleted")
        return TemplateCatalog(templates)

    def to_list(self) -> List[dict]:
        return [t.to_dict() for t in self._templates]


def load_catalog(path: Path) -> TemplateCatalog:
    """Load catalog from YAML file ({"templates": [...]} or a bare list).

    Raises:
        ValueError: If the file does not describe a template list
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    if isinstance(raw, dict):
        raw = raw.get("templates")
    if not isinstance(raw, list):
        raise ValueError(f"Catalog file {path} must contain a list of templates")

    catalog = TemplateCatalog([Template.from_dict(t) for t in raw])
    logger.info(f"Loaded {len(catalog)} templates from {path}")
    return catalog


def save_catalog(catalog: TemplateCatalog, path: Path) -> None:
    """Write catalog to YAML file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        yaml.dump(
            {"templates": catalog.to_list()},
            f,
            allow_unicode=True,
            default_flow_style=False,
            sort_keys=False,
        )
    logger.info(f"Saved {len(catalog)} templates to {path}")

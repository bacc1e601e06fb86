"""
Screenshot Extractor

Reads order fields (tracking number, seller, items, total) from an online
shopping screenshot with Gemini. Extraction never raises: timeouts,
transport errors and unusable responses come back as ``ExtractedFields``
with a FAILED or TIMED_OUT status so the order is still created for review.
"""

import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import BaseModel, Field, ValidationError

from importflow import config
from importflow.models.order import ExtractedFields, ExtractionStatus, OrderItem

logger = logging.getLogger(__name__)


# Output schema sent to the model
class ScreenshotItem(BaseModel):
    """One line item as returned by the model"""

    name: Optional[str] = Field(default=None, description="Full product name")
    description: Optional[str] = Field(default=None, description="Brief description")
    quantity: Optional[int] = Field(default=None, description="Quantity ordered")
    unit_value: Optional[float] = Field(
        default=None, description="Sale price per unit in USD"
    )
    total_value: Optional[float] = Field(
        default=None, description="Quantity x unit value in USD"
    )
    category: Optional[str] = Field(
        default=None,
        description="electronics|clothing|footwear|toys|food|accessories|cosmetics|other",
    )


class ScreenshotOrderData(BaseModel):
    """Order fields as returned by the model"""

    tracking_number: Optional[str] = Field(default=None, description="Tracking number")
    order_number: Optional[str] = Field(default=None, description="Order/confirmation number")
    seller: Optional[str] = Field(default=None, description="Store or seller name")
    order_date: Optional[str] = Field(default=None, description="YYYY-MM-DD")
    shipping_carrier: Optional[str] = Field(
        default=None, description="USPS|UPS|FedEx|DHL|YunExpress|other"
    )
    items: list[ScreenshotItem] = Field(default_factory=list, description="All items")
    order_total: Optional[float] = Field(
        default=None, description="Final total after discounts, in USD"
    )


SCREENSHOT_EXTRACTOR_INSTRUCTION = """You extract factual data (prices, quantities, product names, dates) from
online shopping order screenshots (Amazon, eBay, AliExpress, Shein, etc.) for
customs declarations.

Extract:
1. tracking_number: carrier tracking number, if visible
2. order_number: order id or confirmation number
3. seller: store or seller name
4. order_date: date the order was placed, as YYYY-MM-DD
5. shipping_carrier: USPS, UPS, FedEx, DHL, YunExpress or other, if visible
6. items: every item shown, even if partially visible, with
   - name: full product name as shown
   - quantity: quantity ordered (1 if not shown)
   - unit_value: price per unit in USD. Use the sale price; ignore
     crossed-out original prices
   - total_value: quantity x unit_value
   - description: brief description if available
   - category: one of electronics, clothing, footwear, toys, food,
     accessories, cosmetics, other
7. order_total: the FINAL total after all discounts, coupons and taxes.
   Ignore intermediate subtotals ("Products", "Subtotal", "Productos").
   When several totals are labeled "Total", use the lowest one.

Only amounts shown with a $ symbol are money. Tracking numbers, order
numbers and quantities are never prices.

Use null for any value you cannot find. Return only the JSON object."""


def strip_code_fence(text: str) -> str:
    """Return the JSON inside a markdown code fence, or the text unchanged."""
    if "```json" in text:
        return text.split("```json", 1)[1].split("```", 1)[0].strip()
    if "```" in text:
        return text.split("```", 1)[1].split("```", 1)[0].strip()
    return text.strip()


def _to_decimal(value: float | None) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def convert_to_fields(data: ScreenshotOrderData) -> ExtractedFields:
    """
    Convert the model's output into ExtractedFields.

    Missing item values get defaults: name "Unknown Item", quantity 1,
    unit value 0, total value = unit value x quantity, category "other".
    """
    items = []
    for raw in data.items:
        quantity = raw.quantity if raw.quantity and raw.quantity > 0 else 1
        unit_value = _to_decimal(raw.unit_value) or Decimal("0")
        total_value = _to_decimal(raw.total_value) or unit_value * quantity
        items.append(
            OrderItem(
                name=raw.name or "Unknown Item",
                description=raw.description or None,
                quantity=quantity,
                unit_value=unit_value,
                total_value=total_value,
                category=(raw.category or "other").strip().lower(),
            )
        )

    return ExtractedFields(
        status=ExtractionStatus.COMPLETED,
        tracking_number=data.tracking_number or None,
        order_number=data.order_number or None,
        seller=data.seller or None,
        order_date=data.order_date or None,
        shipping_carrier=data.shipping_carrier or None,
        items=items,
        order_total=_to_decimal(data.order_total),
    )


def parse_response_text(text: str | None) -> ExtractedFields:
    """Parse raw model output, accepting markdown-fenced JSON."""
    if not text or not text.strip():
        return ExtractedFields.failed("Empty response from extraction model")
    try:
        payload = json.loads(strip_code_fence(text))
        data = ScreenshotOrderData.model_validate(payload)
    except (json.JSONDecodeError, ValidationError) as e:
        return ExtractedFields.failed(f"Malformed extraction response: {e}")
    return convert_to_fields(data)


def merge_extractions(results: Iterable[ExtractedFields]) -> ExtractedFields:
    """
    Merge per-screenshot results into one.

    Items are concatenated and the first non-empty value wins for scalar
    fields; distinct tracking numbers are joined. The merged total is the
    sum of each screenshot's declared value (its total, else its item
    totals), so it covers the same items as the merged item list. The
    merged status is FAILED (or TIMED_OUT) only when every screenshot
    failed, PARTIAL when some did.
    """
    results = list(results)
    if not results:
        return ExtractedFields.failed("No screenshots to extract")

    usable = (ExtractionStatus.COMPLETED, ExtractionStatus.PARTIAL)
    succeeded = [r for r in results if r.status in usable]
    failed = [r for r in results if r.status not in usable]
    errors = [r.error for r in results if r.error]

    if not succeeded:
        timed_out = all(r.status == ExtractionStatus.TIMED_OUT for r in failed)
        return ExtractedFields.failed(
            "; ".join(errors) or "Extraction failed",
            status=ExtractionStatus.TIMED_OUT if timed_out else ExtractionStatus.FAILED,
        )

    tracking_numbers: list[str] = []
    for result in succeeded:
        if result.tracking_number and result.tracking_number not in tracking_numbers:
            tracking_numbers.append(result.tracking_number)

    def first(attr: str):
        for result in succeeded:
            value = getattr(result, attr)
            if value not in (None, ""):
                return value
        return None

    declared = [r.declared_value() for r in succeeded]
    known = [value for value in declared if value is not None]
    order_total = sum(known, Decimal("0")) if known else None

    partial = bool(failed) or any(r.status == ExtractionStatus.PARTIAL for r in succeeded)
    return ExtractedFields(
        status=ExtractionStatus.PARTIAL if partial else ExtractionStatus.COMPLETED,
        error="; ".join(errors) or None,
        tracking_number=", ".join(tracking_numbers) or None,
        order_number=first("order_number"),
        seller=first("seller"),
        order_date=first("order_date"),
        shipping_carrier=first("shipping_carrier"),
        items=[item for result in succeeded for item in result.items],
        order_total=order_total,
    )


class ScreenshotExtractor:
    """
    Gemini-backed screenshot reader.

    Usage:
        extractor = ScreenshotExtractor()
        fields = extractor.extract(image_bytes, "image/jpeg")
    """

    def __init__(
        self,
        client: genai.Client | None = None,
        model: str | None = None,
        timeout_seconds: float | None = None,
    ):
        self.model = model or config.DEFAULT_MODEL
        self.timeout_seconds = (
            timeout_seconds
            if timeout_seconds is not None
            else config.EXTRACTION_TIMEOUT_SECONDS
        )
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(
                api_key=config.GEMINI_API_KEY or None,
                http_options=types.HttpOptions(timeout=int(self.timeout_seconds * 1000)),
            )
        return self._client

    def extract(self, image_bytes: bytes, content_type: str) -> ExtractedFields:
        """
        Read order fields from one screenshot.

        Args:
            image_bytes: Raw image data
            content_type: Image MIME type

        Returns:
            ExtractedFields; on failure its status is FAILED or TIMED_OUT
            and ``error`` says why
        """
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=[
                    types.Part.from_bytes(data=image_bytes, mime_type=content_type),
                    SCREENSHOT_EXTRACTOR_INSTRUCTION,
                ],
                config=types.GenerateContentConfig(
                    temperature=0.1,
                    response_mime_type="application/json",
                    response_schema=ScreenshotOrderData,
                ),
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Screenshot extraction timed out after {self.timeout_seconds}s")
            return ExtractedFields.failed(
                f"Extraction timed out: {e}", status=ExtractionStatus.TIMED_OUT
            )
        except (genai_errors.APIError, httpx.HTTPError) as e:
            logger.error(f"Screenshot extraction failed: {e}")
            return ExtractedFields.failed(f"Extraction request failed: {e}")
        except Exception as e:
            logger.exception(f"Unexpected screenshot extraction error: {e}")
            return ExtractedFields.failed(f"Extraction error: {e}")

        result = parse_response_text(response.text)
        if result.status == ExtractionStatus.FAILED:
            logger.warning(
                "Unusable extraction response",
                extra={"json_fields": {"error": result.error}},
            )
        return result

    def extract_many(self, images: Iterable[tuple[bytes, str]]) -> ExtractedFields:
        """Extract every screenshot of a group and merge the results."""
        return merge_extractions(
            self.extract(content, content_type) for content, content_type in images
        )

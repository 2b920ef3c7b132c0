"""Prompt and function schema shared by the LLM extraction providers.

Both providers ask for the same flat JSON object: document-level scalars plus
one array per line-item attribute, where index ``i`` of every array describes
the same line item. The keys are the ones the normalizer reads.
"""

from typing import Any

from invoice_graph.core.normalizer import PER_ITEM_FILLERS, SCALAR_DEFAULTS

FUNCTION_NAME = "extract_invoice_data"

SYSTEM_MESSAGE = "You are an invoice data extraction assistant."

_EXAMPLE_INPUT = (
    "TAX INVOICE\\nInvoice No: INV-2024-118\\nDate: 15/01/2024\\n"
    "Bill To: Acme Traders, Ph: 98450 12345\\n"
    "Item Description Qty Rate Amount\\nSteel Bolt M8 10 12.50 125.00\\n"
    "Hex Nut M8 20 2.00 40.00\\nIGST 18%: 29.70\\nTotal: 194.70"
)

_EXAMPLE_OUTPUT = (
    '{"Invoice number": "INV-2024-118", "Date": "15/01/2024", '
    '"Total amount": "194.70", "Tax amount": "29.70", "Tax rate": "18", '
    '"Discount amount": "0", "Party name": "Acme Traders", '
    '"Company name": "unknown", "Phone number": "9845012345", "Email": "", '
    '"Address": "", "Product names": ["Steel Bolt M8", "Hex Nut M8"], '
    '"Quantity": ["10", "20"], "Unit Amount": ["12.50", "2.00"], '
    '"Price with tax": ["147.50", "47.20"], "Discount": ["0", "0"], '
    '"Tax per item": ["22.50", "7.20"]}'
)


def build_extraction_prompt(document_text: str) -> str:
    """Build the extraction prompt for one document's text."""
    scalars = ", ".join(f'"{name}"' for name in SCALAR_DEFAULTS)
    arrays = ", ".join(f'"{name}"' for name in PER_ITEM_FILLERS)
    return f"""Extract invoice information from the document text below and return ONLY a JSON object.

Document-level fields (strings): {scalars}
Per line item fields (arrays of strings, one entry per line item, same order in every array): {arrays}

Example:
Input: "{_EXAMPLE_INPUT}"
Output: {_EXAMPLE_OUTPUT}

INSTRUCTIONS:
- "Party name" is the customer being billed; "Company name" is the seller
- Amounts are plain numbers without currency symbols or thousands separators
- "Tax rate" is a percentage without the % sign
- "Price with tax" is the line amount after discount and tax
- Use "unknown" for missing text fields and "0" for missing numbers
- Every per-item array must have one entry per line item
- Return ONLY JSON, no explanation

DOCUMENT:
{document_text}

OUTPUT:"""


def function_schema() -> dict[str, Any]:
    """OpenAI function-calling definition for the extraction response."""
    properties: dict[str, Any] = {name: {"type": "string"} for name in SCALAR_DEFAULTS}
    for name in PER_ITEM_FILLERS:
        properties[name] = {"type": "array", "items": {"type": "string"}}
    return {
        "name": FUNCTION_NAME,
        "description": "Extract invoice fields and aligned per-line-item arrays from document text",
        "parameters": {
            "type": "object",
            "properties": properties,
            "required": list(PER_ITEM_FILLERS),
        },
    }

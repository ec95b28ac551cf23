"""Prompts sent to the vision model, keyed by document type."""

EXTRACTION_DOCUMENT_TYPES = (
    "rent_roll",
    "offering_memo",
    "lease_agreement",
    "comparable_sales",
    "financial_statement",
)

TRAINING_DOCUMENT_TYPES = (
    "rent_roll",
    "operating_budget",
    "broker_sales_comparables",
    "broker_lease_comparables",
    "broker_listing",
    "offering_memo",
    "lease_agreement",
    "financial_statements",
)

CLASSIFICATION_PROMPT = """You are a commercial real estate analyst. Classify the document shown in the images into exactly one of these categories:

- rent_roll: tenant listings with units, lease dates, rents and occupancy
- offering_memo: marketing package for a property sale with investment highlights
- lease_agreement: a lease contract between landlord and tenant
- comparable_sales: a list of comparable property sales with prices and cap rates
- financial_statement: income statement, operating statement, balance sheet or budget

Return ONLY valid JSON:
{
  "type": "<one of the categories above>",
  "confidence": <float 0.0-1.0>,
  "reasoning": "<one or two sentences explaining the decision>"
}"""

_EXTRACTION_SHAPE = """Return ONLY valid JSON with this shape:
{
  "documentType": "%s",
  "metadata": {
    "propertyName": "<string or null>",
    "propertyAddress": "<string or null>",
    "documentDate": "<YYYY-MM-DD or null>",
    "totalPages": <int or null>
  },
  "data": { <all extracted fields for this document type> }
}
Use null for anything not present. Normalise dates to YYYY-MM-DD and money to plain numbers."""

SYSTEM_PROMPTS: dict[str, str] = {
    "rent_roll": (
        "You are a commercial real estate professional analysing rent rolls for underwriting. "
        "Extract every tenant row with unit, tenant name, square footage, lease start and end, "
        "monthly and annual rent, and a property summary with occupancy."
    ),
    "offering_memo": (
        "You are a commercial real estate investment professional reviewing an offering "
        "memorandum. Extract the property overview, asking price, financial performance, "
        "tenant summary, investment highlights and risk factors."
    ),
    "lease_agreement": (
        "You are a commercial leasing specialist. Extract the parties, premises, term, rent "
        "schedule, operating expense provisions, renewal options and key legal provisions."
    ),
    "comparable_sales": (
        "You are a data extraction specialist for sales comparables. Extract every property "
        "listed with address, sale date, price, price per square foot, cap rate and size."
    ),
    "financial_statement": (
        "You are a real estate financial analyst. Extract income, operating expenses, net "
        "operating income, debt service and cash flow lines with their periods."
    ),
    "operating_budget": (
        "You are a real estate asset manager. Extract budgeted income streams, operating "
        "expenses, capital expenditures and the resulting net operating income."
    ),
    "broker_sales_comparables": (
        "You are a data extraction specialist for broker sales comparables. Capture every "
        "property with pricing metrics, characteristics and transaction details."
    ),
    "broker_lease_comparables": (
        "You are a leasing analyst. Extract every lease comparable with tenant, size, rate, "
        "term, concessions and effective rent."
    ),
    "broker_listing": (
        "You are a transaction specialist. Extract listing terms, property details, pricing, "
        "commission structure and broker obligations."
    ),
    "financial_statements": (
        "You are a real estate financial analyst. Extract income statement, balance sheet and "
        "cash flow data together with key ratios."
    ),
}

_GENERIC_SYSTEM_PROMPT = (
    "You are an expert real estate document analyst. Extract all relevant information "
    "in a structured format."
)


def system_prompt_for(document_type: str) -> str:
    return SYSTEM_PROMPTS.get(document_type, _GENERIC_SYSTEM_PROMPT)


def extraction_prompt_for(document_type: str) -> str:
    return f"{system_prompt_for(document_type)}\n\n{_EXTRACTION_SHAPE % document_type}"


def user_instruction_for(document_type: str) -> str:
    label = document_type.replace("_", " ")
    return (
        f"Extract comprehensive data from this {label} document. "
        "Capture every row and figure that is visible."
    )

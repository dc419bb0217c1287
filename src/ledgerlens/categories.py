"""Category taxonomy (IRS Schedule C oriented) and the built-in fallback keyword table."""

GROSS_RECEIPTS = "Gross Receipts or Sales"
OFFICE_EXPENSES = "Office Expenses"
SOFTWARE_SUBSCRIPTIONS = "Software and Subscriptions"
CAR_TRUCK_EXPENSES = "Car and Truck Expenses"
TRAVEL = "Travel"
MEALS = "Meals"
UTILITIES = "Utilities"
BANK_FEES = "Bank Fees"
RENT_LEASE_OTHER = "Rent or Lease (Other Business Property)"
INSURANCE_OTHER = "Insurance (Other than Health)"
ADVERTISING = "Advertising"

UNCATEGORIZED = ""

# (name, category_type, description)
DEFAULT_CATEGORIES = [
    # Income
    (GROSS_RECEIPTS, "income", "Customer payments, deposits, invoices"),
    ("Returns and Allowances", "income", "Refunds issued to customers"),
    ("Other Income", "income", "Interest and anything else"),
    # Expenses
    (ADVERTISING, "expense", "Ads, sponsorships, marketing tools"),
    (CAR_TRUCK_EXPENSES, "expense", "Fuel, mileage, parking"),
    ("Commissions and Fees", "expense", "Platform and sales commissions"),
    ("Contract Labor", "expense", "Freelancers, subcontractors (1099 work)"),
    ("Depreciation and Section 179", "expense", "Major equipment write-offs"),
    ("Employee Benefit Programs", "expense", "Health and other benefit plans"),
    (INSURANCE_OTHER, "expense", "Business insurance, liability policies"),
    ("Interest (Mortgage)", "expense", "Mortgage interest on business property"),
    ("Interest (Other)", "expense", "Loan and card interest"),
    ("Legal and Professional Services", "expense", "Accountant, lawyer"),
    (OFFICE_EXPENSES, "expense", "Office supplies, minor equipment"),
    ("Pension and Profit-Sharing Plans", "expense", "Retirement plan contributions"),
    ("Rent or Lease (Vehicles, Machinery, Equipment)", "expense", "Equipment leases"),
    (RENT_LEASE_OTHER, "expense", "Office rent, coworking"),
    ("Repairs and Maintenance", "expense", "Repairs to property and equipment"),
    ("Supplies (Not Inventory)", "expense", "Consumable supplies"),
    (SOFTWARE_SUBSCRIPTIONS, "expense", "SaaS tools, licenses"),
    ("Taxes and Licenses", "expense", "Business licenses, state fees"),
    (TRAVEL, "expense", "Flights, hotels, rides"),
    (MEALS, "expense", "Business meals"),
    (UTILITIES, "expense", "Internet, phone, electric"),
    ("Wages (Less Employment Credits)", "expense", "Employee wages"),
    (BANK_FEES, "expense", "Overdraft, ATM and maintenance fees"),
    ("Other Expenses", "expense", "Anything else"),
    # Excluded from business totals
    ("Personal Expense", "personal", "Not a business expense"),
    ("Personal Transfer", "personal", "Transfers between own accounts"),
]

# Checked in order after user rules; the first category with a matching keyword wins.
# "deposit" is matched regardless of amount sign.
FALLBACK_RULES: dict[str, list[str]] = {
    GROSS_RECEIPTS: ["deposit", "payment received", "invoice payment", "customer payment"],
    OFFICE_EXPENSES: ["staples", "office depot", "office supplies"],
    SOFTWARE_SUBSCRIPTIONS: ["microsoft", "adobe", "quickbooks", "software", "subscription"],
    CAR_TRUCK_EXPENSES: ["shell", "exxon", "mobil", "chevron", "bp", "gas station", "fuel"],
    TRAVEL: ["hotel", "marriott", "hilton", "american airlines", "delta", "uber", "lyft", "rental car"],
    MEALS: ["restaurant", "starbucks", "coffee", "lunch", "dinner", "catering"],
    UTILITIES: ["verizon", "att", "comcast", "internet", "phone service", "electric"],
    BANK_FEES: ["overdraft", "maintenance fee", "atm fee", "service charge"],
    RENT_LEASE_OTHER: ["rent", "lease", "property management", "landlord"],
    INSURANCE_OTHER: ["insurance", "policy premium", "liability insurance"],
    ADVERTISING: ["google ads", "facebook ads", "marketing", "advertising"],
}

CATEGORY_NAMES = [name for name, _, _ in DEFAULT_CATEGORIES]

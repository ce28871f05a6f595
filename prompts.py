# prompts.py

EXTRACTION_PROMPT_TEMPLATE = """
**Your Role:** You are a meticulous AI Order Entry Specialist. You read purchase orders that
customers or sales representatives send by email and turn them into structured data.

**Task:** The attached screenshot shows an email containing an order. Extract the customer
the order is for and every article that is ordered, in the order in which the articles appear.

---
**Output Requirements (Strict):**
Return a single JSON object and nothing else. It must validate against this JSON Schema:
{schema_json}

---
**Detailed Instructions:**
* `customerName`: The company or person placing the order, not the sender of the email
  (e.g., "I just visited our customer Smith & Co. Ltd." -> "Smith & Co. Ltd.").
* `orderedArticles`: One entry per ordered product. Repeat the object for every article.
    * `articleName`: The full product name exactly as written, including model numbers and
      details in parentheses.
    * `quantity`: A whole number of units. Never a string, never zero.
    * `pricePerUnit`: The price of a single unit as a number, without currency symbols or
      thousands separators, keeping the decimal separator (e.g., "1.299,50 EUR" -> 1299.50).
* Do not invent articles or values that are not in the email.
"""

RESOLUTION_PROMPT_TEMPLATE = """
**Your Role:** You are a UI Automation Specialist. You read Windows UI automation trees and
identify the controls an automated agent must operate.

**Task:** Based on the following UI automation tree JSON of the '{window_title}' application,
identify the element IDs of the controls listed below.

**Controls to identify:**
{role_list_str}

---
**Output Requirements (Strict):**
Return a single JSON object and nothing else, with exactly one key per control:
{response_shape_str}

* Every value MUST be an element ID copied verbatim from the tree; never a label or a name.
* Pick editable inputs for text fields and invokable buttons for button controls.

---
**UI Automation Tree JSON:**
{tree_json}
"""

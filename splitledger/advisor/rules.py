"""
Advisor Rule Table

DESIGN DECISION: The advisor is a canned-response bot, not a model. Its
behaviour is an explicit ORDERED list of (name, predicate, responses) rules.
The first rule whose predicate matches the normalized prompt answers; when a
rule has several responses one is picked at random.

Order matters: personal-data questions ("my budget") must win over the
generic budget topic, and specific topics ("low cost fund") over broad ones
("fund").
"""

from dataclasses import dataclass
from typing import Callable


Predicate = Callable[[str], bool]


@dataclass(frozen=True)
class AdviceRule:
    name: str
    predicate: Predicate
    responses: tuple[str, ...]

    def matches(self, text: str) -> bool:
        return self.predicate(text)


def normalize(prompt: str) -> str:
    return (prompt or "").strip().lower()


# -- predicate helpers --------------------------------------------------------

def contains_any(*phrases: str) -> Predicate:
    return lambda text: any(phrase in text for phrase in phrases)


def equals_any(*phrases: str) -> Predicate:
    return lambda text: text in phrases


def starts_with_word(*words: str) -> Predicate:
    """Text is exactly one of the words, or starts with one followed by a space."""
    return lambda text: any(text == w or text.startswith(w + " ") for w in words)


def either(*predicates: Predicate) -> Predicate:
    return lambda text: any(p(text) for p in predicates)


def is_empty(text: str) -> bool:
    return not text


# -- responses ---------------------------------------------------------------

EMPTY_PROMPT_RESPONSE = "Is there something specific about personal finance you'd like to know?"

GENERAL_RESPONSES = (
    "According to financial advisors, reviewing your subscriptions regularly and canceling unused services can save the average household over $500 annually.",
    "Research shows that building multiple streams of income is one of the most effective strategies for achieving financial independence.",
    "Financial experts recommend maintaining an emergency fund of 3-6 months of living expenses in a high-yield savings account for financial security.",
)

TOPIC_RESPONSES: dict[str, tuple[str, ...]] = {
    "budget": (
        "Based on best practices in personal finance, I recommend using the 50/30/20 rule for budgeting: 50% for needs, 30% for wants, and 20% for savings and debt repayment.",
        "Financial experts suggest zero-based budgeting, where you assign every dollar a purpose at the beginning of the month.",
        "According to financial advisors, automating your savings with scheduled transfers to a separate account on payday is one of the most effective ways to build savings.",
    ),
    "debt": (
        "Financial analysts generally recommend the debt avalanche method: paying off high-interest debt first while making minimum payments on other debts.",
        "According to research, the debt snowball method (paying off smallest debts first) can provide psychological wins that keep you motivated.",
        "Many financial institutions offer options to consolidate high-interest debts into a lower-interest loan or 0% APR balance transfer credit card, which could save you significant money on interest.",
    ),
    "stocks": (
        "When investing in stocks, financial experts recommend starting with low-cost index funds that track the broader market, like S&P 500 index funds.",
        "Stocks historically have returned around 10% annually before inflation, though past performance doesn't guarantee future results.",
        "For stock investing, consider dollar-cost averaging (investing a fixed amount regularly regardless of market conditions) to reduce timing risk.",
    ),
    "investing": (
        "Investment professionals emphasize that starting retirement investments early is crucial due to the power of compound interest.",
        "According to Vanguard research, low-cost index funds typically outperform actively managed funds over the long term due to lower fees.",
        "Financial planners generally recommend investing 15-20% of your income for retirement through tax-advantaged accounts like 401(k)s and IRAs.",
    ),
    "retirement": (
        "For retirement planning, most financial advisors recommend saving at least 15% of your pre-tax income annually.",
        "The 4% rule suggests that retirees can withdraw 4% of their retirement savings in the first year, then adjust for inflation each year, with a high probability of not running out of money for at least 30 years.",
        "When planning for retirement, consider tax-advantaged accounts in this priority: first max out employer 401(k) match, then max out HSA if eligible, then max out IRA or Roth IRA, then contribute more to 401(k).",
    ),
    "lowcostfunds": (
        "Low-cost index funds typically have expense ratios below 0.2%, compared to 1-2% for actively managed funds, which can save you tens of thousands of dollars over your investing lifetime.",
        "Low-cost funds refer to investment vehicles with minimal expense ratios that track market indices rather than trying to beat the market through active management.",
        "Low-cost index funds provide broad diversification by investing in hundreds or thousands of companies through a single fund, reducing the risk associated with individual stocks.",
    ),
    "housing": (
        "According to housing affordability guidelines, you should aim to spend no more than 28% of your gross monthly income on housing costs.",
        "Mortgage experts recommend a 20% down payment when buying a home to avoid private mortgage insurance (PMI) and secure better interest rates.",
        "Financial analysts suggest that refinancing can be beneficial when interest rates drop at least 1% lower than your current rate.",
    ),
    "credit": (
        "To improve your credit score, focus on paying bills on time (35% of your score), keeping credit utilization below 30% (30% of your score), and maintaining a long credit history (15% of your score).",
        "Credit bureaus recommend checking your credit report annually for errors, as studies show that 1 in 4 reports contain errors that could affect your score.",
        "Building good credit involves making on-time payments, keeping old accounts open to establish credit history, and limiting applications for new credit to avoid hard inquiries.",
    ),
    "wheretoinvest": (
        "For most investors, brokerages like Vanguard, Fidelity, or Charles Schwab offer excellent low-cost investment options with minimal fees.",
        "When deciding where to invest, prioritize tax-advantaged accounts like 401(k)s, IRAs, HSAs, and 529 plans before using taxable brokerage accounts.",
        "Investment advisors recommend online brokerages with low trading fees, no account minimums, and access to low-cost index funds and ETFs for beginning investors.",
    ),
    "multiplestreams": (
        "Research shows that building multiple streams of income is one of the most effective strategies for achieving financial independence.",
        "Financial experts suggest developing at least 3-7 income streams across different categories: active income (job), portfolio income (investments), passive income (real estate, businesses), and royalty income (content creation).",
        "Creating multiple income streams provides financial resilience by ensuring that if one source decreases or disappears, you have others to rely on.",
    ),
}

# Topic keywords, most specific first
TOPIC_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("lowcostfunds", ("low cost fund", "low-cost fund", "index fund fee", "expense ratio", "low fee")),
    ("wheretoinvest", ("where to invest", "where should i invest", "best place to invest", "investment platform", "brokerage")),
    ("stocks", ("stock", "equity", "shares", "market", "trading")),
    ("multiplestreams", ("multiple stream", "different income", "side hustle", "passive income")),
    ("retirement", ("retire", "401k", "ira", "pension", "social security")),
    ("credit", ("credit score", "fico", "credit card", "credit report", "credit history", "improve credit")),
    ("budget", ("budget", "save", "saving", "expense", "spending", "track money")),
    ("debt", ("debt", "loan", "mortgage", "credit card", "interest rate", "pay off")),
    ("investing", ("invest", "return", "portfolio", "asset", "fund", "etf", "roth")),
    ("housing", ("house", "apartment", "rent", "mortgage", "property", "real estate", "buy home")),
]

GREETINGS = (
    "hi", "hello", "hey", "good morning", "good afternoon", "good evening",
    "howdy", "sup", "what's up", "greetings",
)


def build_rules() -> list[AdviceRule]:
    """The full rule table, in evaluation order. The last rule always matches."""
    rules = [
        AdviceRule("empty", is_empty, (EMPTY_PROMPT_RESPONSE,)),

        # Personal data questions: this advisor never sees the user's money
        AdviceRule(
            "personal_transactions",
            contains_any("my transactions", "my recent transactions", "my spending",
                         "what did i spend", "transaction history"),
            ("I don't have access to your personal transaction data in this demo. In a real financial advisor app, I would connect to your bank accounts securely and show your recent transactions here. Would you like advice on how to track your transactions effectively?",),
        ),
        AdviceRule(
            "personal_balance",
            contains_any("my balance", "my account balance", "how much money", "my savings"),
            ("I don't have access to your account balances in this demo version. In a full implementation, I would securely connect to your financial institutions to provide real-time balance information. Would you like some advice on managing account balances instead?",),
        ),
        AdviceRule(
            "personal_budget",
            contains_any("my budget", "my spending plan", "my financial plan"),
            ("I don't have access to your personal budget information in this demo. In a complete app, I would display your budget categories and spending patterns. Would you like advice on creating an effective budget?",),
        ),
        AdviceRule(
            "personal_investments",
            contains_any("my investments", "my portfolio", "my stocks", "my 401k"),
            ("I don't have access to your investment portfolio in this demo. In a full version, I would show your current investments, performance, and allocation. Would you like general advice about investment strategies instead?",),
        ),

        # Conversational
        AdviceRule(
            "greeting",
            starts_with_word(*GREETINGS),
            ("Hello! I'm your financial advisor bot. How can I help with your financial questions today?",),
        ),
        AdviceRule(
            "thanks",
            either(contains_any("thank", "thanks"), equals_any("ty")),
            ("You're welcome! Is there anything else I can help you with regarding your finances?",),
        ),
        AdviceRule(
            "how_are_you",
            either(contains_any("how are you"), equals_any("how r u", "how r you")),
            ("I'm functioning well, thank you! I'm here to help with your financial questions. What would you like to know?",),
        ),
        AdviceRule(
            "goodbye",
            either(contains_any("bye", "goodbye"), equals_any("see ya", "cya")),
            ("Goodbye! Feel free to return if you have more financial questions in the future.",),
        ),

        # Exact questions with a single detailed answer
        AdviceRule(
            "explain_low_cost_funds",
            contains_any("what do you mean by low cost funds", "what are low cost funds", "low cost funds"),
            ("Low-cost funds refer to investment vehicles with minimal expense ratios (typically below 0.2%) that track market indices rather than trying to beat the market through active management. They save investors money by charging less in fees, allowing more of your money to remain invested and grow over time.",),
        ),
        AdviceRule(
            "explain_where_to_invest",
            contains_any("where do i invest", "where should i invest", "where to invest"),
            ("For most investors, brokerages like Vanguard, Fidelity, or Charles Schwab offer excellent low-cost investment options with minimal fees. When deciding where to invest, prioritize tax-advantaged accounts like 401(k)s, IRAs, and HSAs before using taxable brokerage accounts. Look for platforms that offer commission-free trading and access to low-cost index funds.",),
        ),
        AdviceRule(
            "explain_stocks",
            either(
                contains_any("teach me about stocks", "learn about stocks", "stock investing",
                             "can you teach me about stocks"),
                equals_any("stocks"),
            ),
            ("Stocks represent ownership in a company. When investing in stocks, financial experts recommend starting with broad-based, low-cost index funds that track the entire market before picking individual stocks. This provides instant diversification. Consider dollar-cost averaging (investing a fixed amount regularly) to reduce timing risk, and focus on long-term growth rather than short-term market movements.",),
        ),
    ]

    for topic, keywords in TOPIC_KEYWORDS:
        rules.append(AdviceRule(topic, contains_any(*keywords), TOPIC_RESPONSES[topic]))

    rules.append(AdviceRule("general", lambda text: True, GENERAL_RESPONSES))
    return rules


RULES: list[AdviceRule] = build_rules()


def match_rule(prompt: str, rules: list[AdviceRule] | None = None) -> AdviceRule:
    """First rule matching the normalized prompt."""
    text = normalize(prompt)
    for rule in rules or RULES:
        if rule.matches(text):
            return rule
    # build_rules() ends with a catch-all; a custom table might not
    raise LookupError(f"No advice rule matched: {prompt!r}")

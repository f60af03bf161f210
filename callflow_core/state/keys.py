"""Reserved session state attribute names."""


class StateKeys:
    """Attribute names the engine reads and writes in session state."""

    # Computed once per session
    SYSTEM = "System"

    # Rule set navigation
    NEXT_RULE_SET = "NextRuleSet"
    CURRENT_RULE_SET = "CurrentRuleSet"
    CURRENT_RULE = "CurrentRule"

    # Per-step scratch context, pruned at the start of every turn
    STEP_PREFIX = "CurrentRule_"
    NEXT_FLOW_ARN = "CurrentRule_nextFlowArn"

    # Caller identification
    CUSTOMER_PHONE_NUMBER = "CustomerPhoneNumber"
    ORIGINAL_CUSTOMER_NUMBER = "OriginalCustomerNumber"
    ACCOUNTS = "Accounts"
    CUSTOMER = "Customer"
    NO_ACCOUNTS = "NoAccounts"
    ACCOUNT_DISAMBIGUATE = "AccountDisambiguate"

    # Action supervision
    ACTION_STATUS = "IntegrationStatus"
    ACTION_START = "IntegrationStart"
    ACTION_END = "IntegrationEnd"
    ACTION_ERROR_CAUSE = "IntegrationErrorCause"
    ACTION_REF = "CurrentRule_functionArn"
    ACTION_TIMEOUT = "CurrentRule_functionTimeout"
    ACTION_OUTPUT_KEY = "CurrentRule_functionOutputKey"

    @classmethod
    def step_key(cls, name: str) -> str:
        """Scratch key for a rule parameter."""
        return f"{cls.STEP_PREFIX}{name}"

    @classmethod
    def is_step_key(cls, key: str) -> bool:
        return key.startswith(cls.STEP_PREFIX)

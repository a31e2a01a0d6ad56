"""
test_columns.py: column role resolution and UTM normalization.

Run with:
    pytest tests/ -v
"""

from utmdash.columns import (
    ColumnRoles,
    categorical_columns,
    clean_campaign,
    clean_source,
    detect_revenue_column,
    display_value,
    normalized_value,
    resolve_columns,
)


def perfect_pay_headers():
    headers = [f"col{i}" for i in range(34)]
    headers[1] = "Data Venda"
    headers[5] = "Status"
    headers[8] = "Produto"
    headers[12] = "Valor da Venda"
    headers[29] = "utm_source"
    headers[31] = "utm_campaign"
    headers[33] = "utm_content"
    return headers


# =============================================================================
# Role resolution
# =============================================================================

class TestResolveColumns:
    def test_positional_hints_win_on_full_export(self):
        roles = resolve_columns(perfect_pay_headers())
        assert roles == ColumnRoles(
            date="Data Venda",
            status="Status",
            product="Produto",
            revenue="Valor da Venda",
            source="utm_source",
            campaign="utm_campaign",
            content="utm_content",
        )

    def test_keyword_fallback_when_hint_is_out_of_range(self):
        roles = resolve_columns(["id", "x", "y", "Status Pagamento"])
        assert roles.status == "Status Pagamento"
        assert roles.product is None
        assert roles.revenue is None

    def test_blank_header_at_hint_falls_back_to_keywords(self):
        roles = resolve_columns(["id", "x", "Status", "y", "z", ""])
        assert roles.status == "Status"

    def test_keywords_match_case_insensitively(self):
        roles = resolve_columns(["UTM_SOURCE (original)"])
        assert roles.source == "UTM_SOURCE (original)"

    def test_unresolved_roles_drop_from_categoricals(self):
        roles = ColumnRoles(status="status", source="status")
        assert categorical_columns(roles) == ["status"]

    def test_detect_revenue_column(self):
        assert detect_revenue_column(["id", "Faturamento Bruto"]) == "Faturamento Bruto"
        assert detect_revenue_column(["id", "nome"]) is None


# =============================================================================
# Normalization
# =============================================================================

class TestNormalization:
    def test_source_buckets(self):
        assert clean_source("facebook_ads") == "facebook"
        assert clean_source("fb") == "facebook"
        assert clean_source("TikTok") == "tiktok"
        assert clean_source("Instagram Stories") == "instagram"
        assert clean_source("kwai_app") == "kwai"

    def test_unknown_source_passes_through(self):
        assert clean_source("newsletter") == "newsletter"

    def test_empty_source_is_organic(self):
        assert clean_source("") == "organic"

    def test_campaign_is_cut_at_pipe(self):
        assert clean_campaign("Black Friday | adset 1") == "Black Friday"
        assert clean_campaign("") == "n/a"
        assert clean_campaign(" | adset") == "n/a"

    def test_normalized_value_only_touches_utm_columns(self):
        roles = ColumnRoles(source="src", campaign="camp")
        assert normalized_value(roles, "src", "fb_ads") == "facebook"
        assert normalized_value(roles, "camp", "BF|x") == "BF"
        assert normalized_value(roles, "other", "fb_ads") == "fb_ads"
        assert normalized_value(roles, "other", None) == "N/A"

    def test_display_value_labels_blanks(self):
        roles = ColumnRoles(source="src", product="prod")
        assert display_value(roles, "prod", "  ") == "N/A"
        assert display_value(roles, "src", "") == "organic"
        assert display_value(roles, "prod", 10.0) == "10"

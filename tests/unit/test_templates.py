"""Unit tests for template rendering."""

import pytest

from callflow_core.rules import TemplateError, TemplateRenderer, is_template, resolve_path


@pytest.fixture
def renderer():
    return TemplateRenderer()


class TestExpressions:
    """Tests for variable and helper expressions."""

    def test_variable_path(self, renderer):
        """Test nested variables are substituted."""
        context = {"Customer": {"FirstName": "Jane"}}

        assert renderer.render("Hello {{Customer.FirstName}}", context) == "Hello Jane"
        assert renderer.render("Hello {{ Customer.FirstName }}", context) == "Hello Jane"

    def test_missing_variable(self, renderer):
        """Test missing variables render empty."""
        assert renderer.render("Hello {{Customer.FirstName}}", {}) == "Hello "

    def test_json_helper(self, renderer):
        """Test the json helper."""
        assert renderer.render("{{json Accounts}}", {"Accounts": [1, 2]}) == "[1, 2]"

    def test_inc_helper(self, renderer):
        """Test the inc helper."""
        assert renderer.render("{{inc Count}}", {"Count": "2"}) == "3"

    def test_currency_helper(self, renderer):
        """Test cents are formatted as dollars."""
        assert renderer.render("{{formatCentsAsDollars Balance}}", {"Balance": "1234"}) == "$12.34"
        assert renderer.render("{{formatCentsAsDollars Balance}}", {}) == "unknown dollars"

    def test_date_helpers(self, renderer):
        """Test date and time helpers."""
        context = {"DateOfBirth": "01/02/1980", "Now": "2024-03-04T22:30:00Z"}

        assert renderer.render("{{dateOfBirthHuman DateOfBirth}}", context) == "1st of February 1980"
        assert renderer.render('{{timeLocalHuman Now "Australia/Sydney"}}', context) == "9:30am"
        assert renderer.render('{{dayLocalHuman Now "Australia/Sydney"}}', context) == "Tuesday, 5th of March"
        assert renderer.render('{{dateLocalHuman Now "Australia/Sydney"}}', context) == "5th of March 2024"

    def test_character_speech(self, renderer):
        """Test digits are spelled out."""
        assert renderer.render("{{characterSpeechSlow Code}}", {"Code": "123"}) == "1, 2, 3"
        assert renderer.render("{{characterSpeechFast Code}}", {"Code": "123"}) == "1 2 3"

    def test_helper_failure(self, renderer):
        """Test helper errors surface as TemplateError."""
        with pytest.raises(TemplateError):
            renderer.render("{{inc Name}}", {"Name": "abc"})

    def test_custom_helper(self):
        """Test registering an extra helper."""
        renderer = TemplateRenderer(helpers={"upper": lambda value: str(value).upper()})

        assert renderer.render("{{upper Name}}", {"Name": "jane"}) == "JANE"


class TestSections:
    """Tests for block sections."""

    def test_if_else(self, renderer):
        """Test if sections treat empty lists as false."""
        template = "{{#if Accounts}}found{{else}}none{{/if}}"

        assert renderer.render(template, {"Accounts": [{}]}) == "found"
        assert renderer.render(template, {"Accounts": []}) == "none"
        assert renderer.render(template, {}) == "none"

    def test_ifeq(self, renderer):
        """Test string equality sections."""
        template = '{{#ifeq Status "DONE"}}ok{{else}}waiting{{/ifeq}}'

        assert renderer.render(template, {"Status": "DONE"}) == "ok"
        assert renderer.render(template, {"Status": "RUN"}) == "waiting"

    def test_each(self, renderer):
        """Test iterating a list with its index."""
        template = "{{#each Accounts}}{{inc @index}}:{{PostCode}} {{/each}}"
        context = {"Accounts": [{"PostCode": "2000"}, {"PostCode": "3000"}]}

        assert renderer.render(template, context) == "1:2000 2:3000 "


class TestPaths:
    """Tests for template detection and path resolution."""

    def test_is_template(self):
        assert is_template("Hi {{Name}}") is True
        assert is_template("Hi") is False
        assert is_template(5) is False

    def test_resolve_path(self):
        context = {"Accounts": [{"PostCode": "2000"}], "Name": "Jane"}

        assert resolve_path(context, "Accounts.length") == 1
        assert resolve_path(context, "Accounts.0.PostCode") == "2000"
        assert resolve_path(context, "Accounts.5") is None
        assert resolve_path(context, "Name.First") is None

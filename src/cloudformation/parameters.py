"""
Flattening of stack options into CloudFormation Query wire parameters.

Options are a flat mapping of name to string value:

    StackPolicyDuringUpdateBody  sent as its own request field
    tag.KEY                      a stack tag (create only)
    anything else                a template parameter

Keys are sorted before indices are assigned, so the same options always
produce the same request.
"""

from typing import Dict, Mapping, Optional, Union

POLICY_DURING_UPDATE_KEY = "StackPolicyDuringUpdateBody"
TAG_PREFIX = "tag."
NAME_TAG = "Name"

TAG_KEY = "Tags.member.{index}.Key"
TAG_VALUE = "Tags.member.{index}.Value"
PARAMETER_KEY = "Parameters.member.{index}.ParameterKey"
PARAMETER_VALUE = "Parameters.member.{index}.ParameterValue"

Template = Union[str, bytes]


def _template_text(template: Template) -> str:
    if isinstance(template, bytes):
        return template.decode("utf-8")
    return template


def is_tag_key(key: str) -> bool:
    return key.lower().startswith(TAG_PREFIX)


class ParameterEncoder:
    """Build the wire parameters for CloudFormation stack actions."""

    def encode(
        self,
        action: str,
        name: str,
        template: Optional[Template] = None,
        options: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, str]:
        """
        Encode a create or update request.

        Args:
            action: "CreateStack" or "UpdateStack"
            name: Stack name
            template: Template body
            options: Parameters, tags and update policy

        Returns:
            Wire parameters, including ``Action``
        """
        with_tags = action == "CreateStack"

        params: Dict[str, str] = {"Action": action, "StackName": name}
        if template is not None:
            params["TemplateBody"] = _template_text(template)

        tag_num = 1
        if with_tags:
            params[TAG_KEY.format(index=tag_num)] = NAME_TAG
            params[TAG_VALUE.format(index=tag_num)] = name
            tag_num += 1

        opt_num = 1
        options = options or {}
        for key in sorted(options):
            value = options[key]

            if key == POLICY_DURING_UPDATE_KEY:
                params[POLICY_DURING_UPDATE_KEY] = value
                continue

            if is_tag_key(key):
                # Tags can't be changed on update
                if with_tags:
                    params[TAG_KEY.format(index=tag_num)] = key[len(TAG_PREFIX):]
                    params[TAG_VALUE.format(index=tag_num)] = value
                    tag_num += 1
                continue

            params[PARAMETER_KEY.format(index=opt_num)] = key
            params[PARAMETER_VALUE.format(index=opt_num)] = value
            opt_num += 1

        return params

    def create(
        self, name: str, template: Template, options: Optional[Mapping[str, str]] = None
    ) -> Dict[str, str]:
        return self.encode("CreateStack", name, template, options)

    def update(
        self, name: str, template: Template, options: Optional[Mapping[str, str]] = None
    ) -> Dict[str, str]:
        return self.encode("UpdateStack", name, template, options)

    def delete(self, name: str) -> Dict[str, str]:
        return {"Action": "DeleteStack", "StackName": name}

    def set_policy(self, name: str, policy: Template) -> Dict[str, str]:
        return {
            "Action": "SetStackPolicy",
            "StackName": name,
            "StackPolicyBody": _template_text(policy),
        }

    def get_template(self, name: str) -> Dict[str, str]:
        return {"Action": "GetTemplate", "StackName": name}

    def list_stack_resources(
        self, name: str, next_token: Optional[str] = None
    ) -> Dict[str, str]:
        return self._with_token(
            {"Action": "ListStackResources", "StackName": name}, next_token
        )

    def describe_stacks(
        self, name: Optional[str] = None, next_token: Optional[str] = None
    ) -> Dict[str, str]:
        params = {"Action": "DescribeStacks"}
        if name:
            params["StackName"] = name
        return self._with_token(params, next_token)

    def describe_stack_events(
        self, name: str, next_token: Optional[str] = None
    ) -> Dict[str, str]:
        return self._with_token(
            {"Action": "DescribeStackEvents", "StackName": name}, next_token
        )

    def list_stacks(self, next_token: Optional[str] = None) -> Dict[str, str]:
        return self._with_token({"Action": "ListStacks"}, next_token)

    @staticmethod
    def _with_token(params: Dict[str, str], next_token: Optional[str]) -> Dict[str, str]:
        if next_token:
            params["NextToken"] = next_token
        return params

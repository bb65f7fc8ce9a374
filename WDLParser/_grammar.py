from typing import Optional, Tuple, Set

# Keywords for each supported version of the WDL grammar.
keywords = {}
keywords["1.1"] = set(
    "Array File Float Int Map None Pair String Object Boolean"
    " alias as call command else false if import in input left meta object output"
    " parameter_meta right runtime scatter struct task then true workflow version".split(" ")
)

# Grammar versions and their definitions. Every production which the listener consumes is kept
# as a named node; expression productions are never inlined into their parents, so that each
# nested `expr` becomes a sub-expression.
versions = {}
versions["1.1"] = r"""
///////////////////////////////////////////////////////////////////////////////////////////////////
// document
///////////////////////////////////////////////////////////////////////////////////////////////////

document: version? document_element*

version: "version" VERSION_NUMBER
VERSION_NUMBER: /[^ \t\r\n]+/

?document_element: import_doc | task | workflow | struct

import_doc: "import" string_literal import_as? import_alias*
import_as: "as" CNAME
import_alias: "alias" CNAME "as" CNAME

struct: "struct" CNAME "{" unbound_decl* "}"

///////////////////////////////////////////////////////////////////////////////////////////////////
// workflow
///////////////////////////////////////////////////////////////////////////////////////////////////

workflow: "workflow" CNAME "{" workflow_element* "}"
?workflow_element: input_block | output_block | meta_section | parameter_meta_section
                 | any_decl | call | scatter | conditional

scatter: "scatter" "(" CNAME "in" expr ")" "{" inner_workflow_element* "}"
conditional: "if" "(" expr ")" "{" inner_workflow_element* "}"
?inner_workflow_element: any_decl | call | scatter | conditional

call: "call" call_target call_alias? call_after* _call_body?
call_target: CNAME ("." CNAME)*
call_alias: "as" CNAME
call_after: "after" CNAME
_call_body: "{" call_inputs? "}"
call_inputs: input_colon? [call_input ("," call_input)*] ","?
input_colon: "input" ":"
call_input: CNAME ["=" expr]

///////////////////////////////////////////////////////////////////////////////////////////////////
// task
///////////////////////////////////////////////////////////////////////////////////////////////////

task: "task" CNAME "{" task_element* command task_element* "}"
?task_element: input_block
             | output_block
             | meta_section
             | parameter_meta_section
             | runtime_section
             | any_decl

input_block: "input" "{" any_decl* "}"
output_block: "output" "{" bound_decl* "}"

// task commands: with {} and <<< >>> command and ${} and ~{} placeholder styles
command: "command" (_command1 | _command2)

// meta/parameter_meta sections (effectively JSON); only the top-level keys are entries
meta_section: "meta" meta_object
parameter_meta_section: "parameter_meta" meta_object
meta_object: "{" [meta_kv (","? meta_kv)*] ","? "}"
meta_kv: CNAME ":" meta_value
?meta_value: meta_scalar
           | string_literal
           | "{" [meta_object_kv ("," meta_object_kv)*] ","? "}" -> meta_nested_object
           | "[" [meta_value ("," meta_value)*] ","? "]" -> meta_array
meta_object_kv: CNAME ":" meta_value
!meta_scalar: "true" | "false" | "None" | INT | SIGNED_INT | FLOAT | SIGNED_FLOAT

// runtime section (key-expression pairs)
runtime_section: "runtime" "{" [runtime_kv (","? runtime_kv)*] "}"
runtime_kv: CNAME ":" expr

///////////////////////////////////////////////////////////////////////////////////////////////////
// decl
///////////////////////////////////////////////////////////////////////////////////////////////////

unbound_decl: type CNAME -> decl
bound_decl: type CNAME "=" expr -> decl
?any_decl: unbound_decl | bound_decl

// WDL types
type: CNAME _quant?
      | CNAME "[" type ["," type] "]" _quant?

_quant: optional | nonempty | optional_nonempty
optional: "?"
nonempty: "+"
optional_nonempty: "+?"

///////////////////////////////////////////////////////////////////////////////////////////////////
// expr
///////////////////////////////////////////////////////////////////////////////////////////////////

expr: expr_infix0

?expr_infix0: expr_infix0 "||" expr_infix1 -> lor
            | expr_infix1

?expr_infix1: expr_infix1 "&&" expr_infix2 -> land
            | expr_infix2

?expr_infix2: expr_infix2 "==" expr_infix3 -> eqeq
            | expr_infix2 "!=" expr_infix3 -> neq
            | expr_infix2 "<=" expr_infix3 -> lte
            | expr_infix2 ">=" expr_infix3 -> gte
            | expr_infix2 "<" expr_infix3 -> lt
            | expr_infix2 ">" expr_infix3 -> gt
            | expr_infix3

?expr_infix3: expr_infix3 "+" expr_infix4 -> add
            | expr_infix3 "-" expr_infix4 -> sub
            | expr_infix4

?expr_infix4: expr_infix4 "*" expr_infix5 -> mul
            | expr_infix4 "/" expr_infix5 -> div
            | expr_infix4 "%" expr_infix5 -> rem
            | expr_infix5

?expr_infix5: expr_core

// operand of a unary operator, compiled as a sub-expression
expr_operand: expr_core

// expression core (everything but infix)
?expr_core: "(" expr ")" -> expression_group
          | literal
          | string
          | "!" expr_operand -> negate
          | "-" expr_operand -> unary_minus
          | "+" expr_operand -> unary_plus

          | "[" [expr ("," expr)*] ","? "]" -> array
          | expr_core "[" expr "]" -> at

          | "(" expr "," expr ")" -> pair
          | "{" [map_kv ("," map_kv)*] ","? "}" -> map

          | "if" expr "then" expr "else" expr -> ifthenelse

          | CNAME "(" [expr ("," expr)*] ")" -> apply

          | CNAME "{" [object_kv ("," object_kv)* ","?] "}" -> obj

          | CNAME -> left_name
          | expr_core "." CNAME -> get_name

?map_key: expr_core
map_kv: map_key ":" expr

object_kv:  CNAME ":" expr
          | string_literal ":" expr

///////////////////////////////////////////////////////////////////////////////////////////////////
// literals & string interpolations
///////////////////////////////////////////////////////////////////////////////////////////////////

?literal: "true"-> boolean_true
        | "false" -> boolean_false
        | "None" -> null
        | INT -> int
        | FLOAT -> float

?string: string1 | string2

_DOUBLE_BACKSLASH.2: "\\\\"
STRING_INNER1: (_DOUBLE_BACKSLASH|"\\'"|/[^']/)
ESCAPED_STRING1: "'" STRING_INNER1* "'"
string_literal: ESCAPED_STRING | ESCAPED_STRING1

_EITHER_DELIM.2: "~{" | "${"

// each quoting style has its own placeholder rule, so that the lexer state after the closing
// brace accepts only that style's fragments
// string (single-quoted)
STRING1_CHAR: _DOUBLE_BACKSLASH | "\\'" | /[^'~$]/ | /\$(?=[^{])/ | /\~(?=[^{])/
STRING1_FRAGMENT: STRING1_CHAR+
string1: /'/ string1_part string1_placeholder_part* /'/ -> string
string1_part: STRING1_FRAGMENT? -> string_part
string1_expr_part: _EITHER_DELIM placeholder "}" -> string_expr_part
string1_placeholder_part: string1_expr_part string1_part -> string_expr_with_string_part

// string (double-quoted)
STRING2_CHAR: _DOUBLE_BACKSLASH | "\\\"" | /[^"~$]/ | /\$(?=[^{])/ | /~(?=[^{])/
STRING2_FRAGMENT: STRING2_CHAR+
string2: /"/ string2_part string2_placeholder_part* /"/ -> string
string2_part: STRING2_FRAGMENT? -> string_part
string2_expr_part: _EITHER_DELIM placeholder "}" -> string_expr_part
string2_placeholder_part: string2_expr_part string2_part -> string_expr_with_string_part

COMMAND1_CHAR: /[^~$}]/ | /\$(?=[^{])/ | /~(?=[^{])/
COMMAND1_FRAGMENT: COMMAND1_CHAR+
_command1: "{" (COMMAND1_FRAGMENT? command_placeholder)* COMMAND1_FRAGMENT? "}"
command_placeholder: _EITHER_DELIM placeholder "}"

COMMAND2_CHAR: /[^~>]/ | /~(?=[^{])/ | />(?=[^>])/ | />>(?=[^>])/
COMMAND2_FRAGMENT: COMMAND2_CHAR+
_command2: "<<<" (COMMAND2_FRAGMENT? command2_placeholder)* COMMAND2_FRAGMENT? ">>>"
command2_placeholder: "~{" placeholder "}" -> command_placeholder

placeholder_value: string_literal | INT | FLOAT
!?placeholder_name: CNAME | "true" | "false"  // extra hints needed here to overcome literal
placeholder_option: placeholder_name "=" placeholder_value
placeholder: placeholder_option* expr

CNAME: /[a-zA-Z][a-zA-Z0-9_]*/

%import common.INT
%import common.SIGNED_INT
%import common.FLOAT
%import common.SIGNED_FLOAT
%import common.ESCAPED_STRING

///////////////////////////////////////////////////////////////////////////////////////////////////
// whitespace/comments
///////////////////////////////////////////////////////////////////////////////////////////////////

%import common.NEWLINE
SPACE: /[ \t]+/
COMMENT: /[ \t]*/ "#" /[^\r\n]*/

%ignore SPACE
%ignore NEWLINE
%ignore COMMENT
"""


def get(version: Optional[str] = None) -> Tuple[str, Set[str]]:
    version = version or "1.1"
    return (versions[version], keywords[version])

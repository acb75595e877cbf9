"""Built-in sample snippets, one per supported language."""

from codeclarity.schemas.contracts import Language

SAMPLE_CODE: dict[Language, str] = {
    Language.JAVASCRIPT: """\
// A simple "Hello, World!" function in JavaScript
function greet(name) {
  console.log(`Hello, ${name}!`);
}

greet('World');""",
    Language.PYTHON: """\
# A simple "Hello, World!" function in Python
def greet(name):
    print(f"Hello, {name}!")

greet('World')""",
    Language.CPP: """\
// A simple "Hello, World!" program in C++
#include <iostream>
#include <string>

void greet(const std::string& name) {
    std::cout << "Hello, " << name << "!" << std::endl;
}

int main() {
    greet("World");
    return 0;
}""",
}
